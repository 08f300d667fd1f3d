#!/usr/bin/env python3

import asyncio
import json
import logging
import sys
from typing import Any

from regtools.catalog import describe_tag
from regtools.catalog import get_image_info
from regtools.catalog import list_repositories
from regtools.catalog import list_tags
from regtools.client import RegistryClient
from regtools.client import client_from_lookup
from regtools.connection import RegistryConnection
from regtools.connection import StaticConnectionLookup
from utils import bytes_to_human_readable
from utils import coerce_to_bool
from utils import common_args
from utils import datestr2date
from utils import get_log_level
from utils import shorten_digest
from utils.errors import RegistryError
from utils.errors import ValidationError

logger = logging.getLogger("registry-browser")

ACTIONS = ("check", "catalog", "repos", "tags", "manifest", "config", "info", "delete")

# Which of --repo, --ref, --digest each action needs
REQUIRED_PARAMS: dict[str, tuple[str, ...]] = {
    "check": (),
    "catalog": (),
    "repos": (),
    "tags": ("repo",),
    "manifest": ("repo", "ref"),
    "config": ("repo", "digest"),
    "info": ("repo", "ref"),
    "delete": ("repo", "ref"),
}


class Config:
    def __init__(self, args) -> None:
        self.url: str = args.url
        self.username: str = args.username
        self.password: str = args.password
        self.verify_tls: bool = coerce_to_bool(args.verify_tls)
        self.name: str = args.name
        self.log_level: int = get_log_level(args.loglevel)
        self.action: str = args.action.lower()
        self.repo: str = args.repo
        self.ref: str = args.ref
        self.digest: str = args.digest
        # Left as given, the pagination coerces anything odd to its defaults
        self.page: str = args.page
        self.page_size: str = args.page_size
        self.search: str = args.search
        self.details: bool = coerce_to_bool(args.details)
        self.delete: bool = coerce_to_bool(args.delete)

        # Validate
        if not self.url:
            raise ValidationError("A registry URL is required, via --url or REGISTRY_URL")
        if self.action not in ACTIONS:
            raise ValidationError(f"{self.action} is not a valid action")
        for name in REQUIRED_PARAMS[self.action]:
            if not getattr(self, name):
                raise ValidationError(f"--{name} is required for {self.action}")

    def connection(self) -> RegistryConnection:
        return RegistryConnection(
            url=self.url,
            username=self.username,
            password=self.password,
            verify_tls=self.verify_tls,
            name=self.name,
        )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _created(value: str) -> str:
    if not value:
        return "-"
    try:
        return datestr2date(value).strftime("%Y-%m-%d %H:%M:%S %Z")
    except ValueError:
        return value


async def _run(config: Config, client: RegistryClient) -> None:
    if config.action == "check":
        await client.check_connection()
        logger.info(f"{client.connection} is reachable at {client.base_url}")

    elif config.action == "catalog":
        _print_json((await client.get_catalog()).as_dict())

    elif config.action == "repos":
        page = await list_repositories(client, config.page, config.page_size, config.search)
        _print_json(page.as_dict())
        if page.skipped:
            logger.warning(f"{page.skipped} repositories could not be read and were left out")

    elif config.action == "tags":
        page = await list_tags(client, config.repo, config.page, config.page_size, config.search)
        if config.details:
            details = [await describe_tag(client, config.repo, tag) for tag in page.data]
            _print_json({**page.as_dict(), "data": [x.as_dict() for x in details]})
        else:
            _print_json({**page.as_dict(), "data": {"name": config.repo, "tags": page.data}})

    elif config.action == "manifest":
        _print_json((await client.get_manifest(config.repo, config.ref)).as_dict())

    elif config.action == "config":
        _print_json(await client.get_image_config(config.repo, config.digest))

    elif config.action == "info":
        info = await get_image_info(client, config.repo, config.ref)
        _print_json(info.as_dict())
        logger.info(
            f"{info.name}:{info.tag} {shorten_digest(info.digest)} "
            f"{bytes_to_human_readable(info.total_size)} in {info.layer_count} layers, "
            f"created {_created(info.config.get('created', ''))}",
        )

    elif config.action == "delete":
        if config.delete:
            digest = await client.delete_image(config.repo, config.ref)
            logger.info(f"Deleted {config.repo}:{config.ref} ({digest})")
        else:
            manifest = await client.get_manifest(config.repo, config.ref)
            logger.info(f"Would delete {config.repo}:{config.ref} ({manifest.digest})")


def build_parser():
    parser = common_args(
        "Browse a Docker / OCI registry: list repositories and tags, inspect images, delete them",
    )

    parser.add_argument(
        "--action",
        help=f"One of {', '.join(ACTIONS)}",
        required=True,
    )
    parser.add_argument("--name", default="", help="A display name for the registry, used in log messages")
    parser.add_argument("--repo", default="", help="The repository, e.g. library/nginx")
    parser.add_argument("--ref", default="", help="A tag or digest within the repository")
    parser.add_argument("--digest", default="", help="A config blob digest")
    parser.add_argument("--page", default="1", help="The page of results to show")
    parser.add_argument("--page-size", default="20", help="Results per page, 1 to 100")
    parser.add_argument("--search", default="", help="Case-insensitive substring to filter by")
    parser.add_argument(
        "--details",
        default=False,
        help="If provided with tags, fetch each tag's image summary",
    )

    # Requires an affirmative command to actually do a delete
    parser.add_argument(
        "--delete",
        default=False,
        help="If provided, actually delete the image",
    )

    return parser


async def _main() -> int:
    args = build_parser().parse_args()

    logging.basicConfig(
        level=get_log_level(args.loglevel),
        datefmt="%Y-%m-%d %H:%M:%S",
        format="[%(asctime)s] [%(levelname)-8s] [%(name)-10s] %(message)s",
    )
    # https likes to log at INFO, reduce that
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        config = Config(args)
    except ValidationError as e:
        logger.error(str(e))
        return 2

    try:
        async with client_from_lookup(StaticConnectionLookup(config.connection())) as client:
            await _run(config, client)
    except RegistryError as e:
        logger.error(f"{config.action} failed: {e}")
        return 1

    return 0


def main() -> None:
    try:
        code = asyncio.run(_main())
    finally:
        logging.shutdown()
    sys.exit(code)


if __name__ == "__main__":
    main()
