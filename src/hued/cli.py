"""CLI entry point for the hued daemon.

Provides:
- run: discover lights, load the configuration and evaluate rules on a
  fixed interval until interrupted
- check: load the configuration and list what was loaded
"""

import logging
import time
from pathlib import Path
from typing import Annotated

import typer

from hued.config import BridgeConfig, EngineConfig
from hued.exceptions import ConfigError, MissingRulesError
from hued.lighting import HueBridgeService
from hued.rules import RuleEngine, SceneRef

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s hued[%(process)d]: %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%b %d %X"

# Bridge/HTTP client loggers, only shown with --hue-debug
BRIDGE_LOGGERS = ["httpx", "httpcore", "hued.lighting"]

app = typer.Typer(
    name="hued",
    help="Rule-driven daemon for Hue lighting",
    add_completion=False,
    no_args_is_help=True,
)


def configure_logging(debug: bool = False, hue_debug: bool = False) -> None:
    """Set up daemon log output."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )
    bridge_level = logging.DEBUG if hue_debug else logging.WARNING
    for name in BRIDGE_LOGGERS:
        logging.getLogger(name).setLevel(bridge_level)


def build_engine(config: EngineConfig) -> RuleEngine:
    """Create the engine wired to the configured Hue bridge."""
    try:
        bridge = BridgeConfig.from_file(config.bridge_path)
    except ConfigError as e:
        logger.error(f"{e}")
        bridge = BridgeConfig()
    logger.info("Configured bridge connection")
    return RuleEngine(config, HueBridgeService(bridge))


ConfigDirOption = Annotated[
    Path,
    typer.Option("--config-dir", "-c", help="Directory holding the YAML files"),
]


@app.command()
def run(
    config_dir: ConfigDirOption = Path("."),
    interval: Annotated[
        float,
        typer.Option("--interval", "-i", min=0.1, help="Seconds between passes"),
    ] = 5.0,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-d", help="Log debug messages"),
    ] = False,
    hue_debug: Annotated[
        bool,
        typer.Option("--hue-debug", help="Log bridge communication"),
    ] = False,
    blink: Annotated[
        bool,
        typer.Option("--blink", "-b", help="Blink each light when it is discovered"),
    ] = False,
    once: Annotated[
        bool,
        typer.Option("--once", help="Run a single pass and exit"),
    ] = False,
) -> None:
    """Run the daemon."""
    configure_logging(debug, hue_debug)
    config = EngineConfig(
        config_dir=config_dir,
        interval=interval,
        debug=debug,
        hue_debug=hue_debug,
        blink=blink,
    )

    logger.info("Starting...")
    engine = build_engine(config)
    engine.discover_lights(blink=config.blink)
    try:
        engine.load()
    except MissingRulesError:
        engine.shutdown()
        raise typer.Exit(code=1)
    except ConfigError as e:
        logger.error(f"Cannot start without rules: {e}")
        engine.shutdown()
        raise typer.Exit(code=1) from e
    logger.info("Started successfully!")

    try:
        while True:
            engine.reload()
            engine.refresh_lights()
            engine.evaluate_and_execute()
            if once:
                break
            time.sleep(config.interval)
    except KeyboardInterrupt:
        pass
    finally:
        engine.shutdown()


@app.command()
def check(config_dir: ConfigDirOption = Path(".")) -> None:
    """Load the configuration and list events, scenes and rules."""
    configure_logging()
    config = EngineConfig(config_dir=config_dir)
    engine = build_engine(config)
    try:
        engine.load()
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Events: {', '.join(engine.events.names()) or '-'}")
    typer.echo(f"Scenes: {', '.join(engine.scenes.names()) or '-'}")
    for rule in engine.rules:
        if isinstance(rule.target, SceneRef):
            target = f"scene {rule.target.name}"
        else:
            target = "events " + ", ".join(e.name or "?" for e in rule.target.events)
        mode = "trigger" if rule.trigger else "repeat"
        typer.echo(
            f"Rule {rule.name}: priority {rule.priority}, {mode}, "
            f"{len(rule.conditions)} condition(s), {target}"
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
