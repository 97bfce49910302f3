"""
Command Line Interface for stow.
"""
import logging
import signal
import sys

import click

from .. import __version__
from ..errors import MalformedMetadataError, PackageNotFoundError, StowError
from ..MANAGERS.stow_orchestrator import StowOrchestrator
from ..MODELS.stow_config import StowConfig

EXAMPLE = """\b
EXAMPLE:
    stow --repo docker.private.com:443 --push core/nginx

\b
    Would create and push the following images/tags:

\b
    docker.private.com:443/core/nginx               1.11.10-20170215235242
    docker.private.com:443/core/nginx               latest
    docker.private.com:443/core/shared_deps_base    a8f6b4a21c68f76b
    docker.private.com:443/core/nginx_base          a8f6b4a21c68f76b
    docker.private.com:443/core/habitat_base        0.19.0
"""

MISSING_PACKAGE = "You must specify one or more Habitat packages to Dockerize."


def fail(message: str, code: int = 1):
    """
    Prints an error marker and message to stderr and exits.
    """
    click.secho("ERROR: ", fg="red", bold=True, err=True, nl=False)
    click.secho(message, bold=True, err=True)
    sys.exit(code)


def configure_logging(config: StowConfig):
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]}, epilog=EXAMPLE)
@click.option('--repo', metavar='URL', default=None, help='If given, prefix the tag with the URL')
@click.option('--push', is_flag=True, help='Push the built images to the configured repository')
@click.option('--slim', is_flag=True, help='Strip unused files from every image layer')
@click.option('--debug', is_flag=True, help='Verbose output, including generated Dockerfiles')
@click.argument('package', metavar='PKG_IDENT', required=False)
@click.version_option(__version__, prog_name='stow')
@click.pass_context
def cli(ctx, repo, push, slim, debug, package):
    """
    Habitat Package Dockerize - Create a Docker container from a Habitat package.

    PKG_IDENT is a Habitat package identifier (ex: acme/redis).
    """
    if not package:
        click.echo(ctx.get_help())
        fail(MISSING_PACKAGE)

    try:
        config = StowConfig.from_env().with_overrides(registry_url=repo, push=push, slim=slim)
        if debug:
            config = config.model_copy(update={"debug": True, "log_level": "DEBUG"})
        configure_logging(config)

        result = StowOrchestrator(config).run(package)
    except MalformedMetadataError as e:
        fail(str(e))
    except PackageNotFoundError as e:
        click.echo(ctx.get_help())
        fail(str(e))
    except StowError as e:
        fail(str(e))
    except KeyboardInterrupt:
        fail("Interrupted", 130)

    for layer, outcome in result.outcomes.items():
        click.echo(f"{layer.value:15} {outcome.value}")
    click.echo(f"Built {result.tags.run} and {result.tags.run_latest}")


def _terminate(signum, frame):
    # Unwinds through the live build context so it is removed
    raise SystemExit(128 + signum)


def main():
    """
    Main entry point for the CLI.
    """
    signal.signal(signal.SIGTERM, _terminate)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _terminate)
    cli()


if __name__ == '__main__':
    main()
