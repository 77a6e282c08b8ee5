"""Container registry CLI.

Inspect image references and query Registry HTTP API V2 endpoints using the
configured registry credentials.

Usage:
    container-registry parse nginx
    container-registry --config registries.yaml tags demo.goharbor.io library/nginx
    container-registry catalog localhost:5000
    container-registry manifest springcloud/spring-cloud-dataflow-server:2.11.0
    container-registry labels springcloud/spring-cloud-dataflow-server:2.11.0
    container-registry --dockerconfigjson ~/.docker/config.json registries
"""

import argparse
import json
import sys

from container_registry.logging_config import configure_logging, configure_module_logging
from container_registry.registry.exceptions import RegistryError
from container_registry.registry.metadata import ImageMetadataResolver
from container_registry.registry.parser import ImageReferenceParser
from container_registry.settings import build_service, load_dockerconfigjson, load_registry_properties

logger = configure_module_logging("cli")


def _print_json(data):
    print(json.dumps(data, indent=2, sort_keys=True))


def cmd_parse(args, properties):
    """Parse an image name without any network access."""
    parser = ImageReferenceParser(
        properties.default_registry_host,
        properties.default_repository_tag,
        properties.official_repository_namespace,
    )
    image = parser.parse(args.image)
    _print_json(
        {
            "canonical_name": image.canonical_name,
            "registry_host": image.registry_host,
            "hostname": image.hostname,
            "port": image.port,
            "namespace": image.repository_namespace,
            "repository_name": image.repository_name,
            "repository": image.repository,
            "reference": image.reference,
            "reference_type": image.reference_type.value,
        }
    )
    return 0


def cmd_tags(args, service):
    """List the tags of a repository."""
    _print_json(service.get_tags(args.registry, args.repository))
    return 0


def cmd_catalog(args, service):
    """List the repositories of a registry."""
    _print_json(service.get_repositories(args.registry))
    return 0


def cmd_manifest(args, service):
    """Show the manifest of an image."""
    context = service.resolve(args.image)
    manifest = service.get_manifest(context)
    _print_json(manifest.model_dump(exclude_none=True))
    return 0


def cmd_labels(args, service):
    """Show the labels of an image."""
    _print_json(ImageMetadataResolver(service).get_image_labels(args.image))
    return 0


def cmd_registries(args, service):
    """List the effective registry configurations, secrets excluded."""
    _print_json(
        [
            configuration.model_dump(mode="json", by_alias=True, exclude={"secret"})
            for configuration in service.store
        ]
    )
    return 0


REMOTE_COMMANDS = {
    "tags": cmd_tags,
    "catalog": cmd_catalog,
    "manifest": cmd_manifest,
    "labels": cmd_labels,
    "registries": cmd_registries,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="container-registry",
        description="Container image reference parser and registry client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  container-registry parse nginx
  container-registry tags registry-1.docker.io library/nginx
  container-registry --config registries.yaml labels demo.goharbor.io/library/app:1.0
        """,
    )
    parser.add_argument(
        "--config", help="Registry configuration YAML (default: $CONTAINER_REGISTRY_CONFIG)"
    )
    parser.add_argument(
        "--dockerconfigjson",
        help="Mounted .dockerconfigjson secret (default: $CONTAINER_REGISTRY_DOCKERCONFIGJSON)",
    )
    parser.add_argument(
        "--log-level", help="Log level (default: $CONTAINER_REGISTRY_LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    parse_cmd = subparsers.add_parser("parse", help="Parse an image name")
    parse_cmd.add_argument("image", help="Image name")

    tags_cmd = subparsers.add_parser("tags", help="List repository tags")
    tags_cmd.add_argument("registry", help="Registry host (e.g., localhost:5000)")
    tags_cmd.add_argument("repository", help="Repository (e.g., library/nginx)")

    catalog_cmd = subparsers.add_parser("catalog", help="List registry repositories")
    catalog_cmd.add_argument("registry", help="Registry host")

    manifest_cmd = subparsers.add_parser("manifest", help="Show an image manifest")
    manifest_cmd.add_argument("image", help="Image name")

    labels_cmd = subparsers.add_parser("labels", help="Show image labels")
    labels_cmd.add_argument("image", help="Image name")

    subparsers.add_parser("registries", help="Show effective registry configurations")
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.log_level, include_console=True, log_file=False)

    try:
        properties = load_registry_properties(args.config)
        if args.command == "parse":
            return cmd_parse(args, properties)

        dockerconfigjson = load_dockerconfigjson(args.dockerconfigjson)
        with build_service(properties, dockerconfigjson or "") as service:
            return REMOTE_COMMANDS[args.command](args, service)

    except RegistryError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
