"""
Rule engine - loading, hot reload and the evaluate-and-execute pass.

Handles registry loading from the config directory, reload on file change,
priority-based selection of active rules, and dispatch of rule execution.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from hued.config import EngineConfig
from hued.exceptions import ConfigError, MissingRulesError
from hued.lighting.adapter import Group, Light, LightingError, LightingService

from .evaluators import ConditionEvaluator, PingProbe
from .executor import EventExecutor
from .loader import ConfigSource, load_events, load_rules, load_scenes
from .models import LightEvent, PassResult, Rule, Scene
from .registry import Registry
from .sun import SunDataCache, SunriseSunsetClient

logger = logging.getLogger(__name__)

EVENTS = "events"
SCENES = "scenes"
RULES = "rules"


def plural(count: int, noun: str) -> str:
    """Format a count with a correctly pluralised noun."""
    return f"{count} {noun}{'' if count == 1 else 's'}"


class RuleEngine:
    """
    Core engine for lighting rules.

    Responsibilities:
    - Load events, scenes and rules from the config directory
    - Reload them when their files change
    - Evaluate rules and select the active (highest priority) ones
    - Execute active rules, honouring trigger semantics
    - Discover and refresh lights via the lighting service
    """

    def __init__(
        self,
        config: EngineConfig,
        lighting: LightingService,
        evaluator: Optional[ConditionEvaluator] = None,
        executor: Optional[EventExecutor] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._lighting = lighting
        if evaluator is None:
            evaluator = ConditionEvaluator(
                SunDataCache(SunriseSunsetClient(timeout=config.sun_timeout)),
                PingProbe(timeout=config.ping_timeout),
            )
        self._evaluator = evaluator
        self._executor = executor or EventExecutor(lighting)

        self._sources: Dict[str, ConfigSource] = {
            EVENTS: ConfigSource(config.events_path),
            SCENES: ConfigSource(config.scenes_path),
            RULES: ConfigSource(config.rules_path),
        }

        # Modification time of each source when it was last loaded. Sources
        # that have never been loaded compare against the engine start time.
        self._started_at = clock()
        self._loaded_mtimes: Dict[str, float] = {}

        self._events: Registry[LightEvent] = Registry(EVENTS)
        self._scenes: Registry[Scene] = Registry(SCENES)
        self._rules: List[Rule] = []

        self._lights: List[Light] = []
        self._groups: List[Group] = []

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    @property
    def events(self) -> Registry[LightEvent]:
        return self._events

    @property
    def scenes(self) -> Registry[Scene]:
        return self._scenes

    @property
    def lights(self) -> List[Light]:
        return list(self._lights)

    @property
    def groups(self) -> List[Group]:
        return list(self._groups)

    # =========================================================================
    # Lights
    # =========================================================================

    def discover_lights(self, blink: bool = False) -> None:
        """Enumerate lights and groups. Failures leave both lists empty."""
        logger.info("Discovering lights...")
        try:
            lights = self._lighting.get_lights()
            for light in lights:
                logger.info(f"* Found light {light.id}: {light.name}")
                if blink:
                    self._lighting.alert(light.id)
            logger.info(f"Found {plural(len(lights), 'light')}")

            logger.info("Discovering groups...")
            groups = self._lighting.get_groups()
            for group in groups:
                logger.info(
                    f"* Found group {group.id}: {group.name} with "
                    f"lights {', '.join(group.light_ids)}"
                )
            logger.info(f"Found {plural(len(groups), 'group')}")
        except LightingError as e:
            logger.error(f"Could not discover lights/groups: {e}")
            self._lights = []
            self._groups = []
            return

        self._lights = lights
        self._groups = groups

    def refresh_lights(self) -> None:
        """Re-read light state. Failures leave the light list empty."""
        logger.debug("Refreshing lights...")
        try:
            self._lights = self._lighting.refresh()
        except LightingError as e:
            logger.error(f"Could not refresh lights: {e}")
            self._lights = []
            return
        logger.debug(f"Refreshed {plural(len(self._lights), 'light')}")

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self) -> None:
        """
        Load everything from scratch.

        Events and scenes are optional. Rules are mandatory.

        Raises:
            MissingRulesError: rules.yml does not exist
            ConfigError: rules.yml could not be parsed
        """
        for kind in (EVENTS, SCENES):
            if self._sources[kind].exists():
                logger.info(f"Loading {kind}...")
                self._load_category(kind)

        rules_source = self._sources[RULES]
        if not rules_source.exists():
            logger.error(f"Cannot find required file: {rules_source}, aborting!")
            raise MissingRulesError(f"Required file not found: {rules_source}")

        logger.info("Loading rules...")
        if not self._load_category(RULES):
            raise ConfigError(f"Could not load rules from {rules_source}")

    def reload(self) -> None:
        """
        Reload sources whose files changed since they were last loaded.

        A changed events or scenes file forces the rules to be reloaded too,
        since rules bind events and scenes by name.
        """
        logger.debug("Checking if events/scenes/rules need to be reloaded...")
        reload_rules = False
        for kind in (EVENTS, SCENES):
            if self._is_changed(kind):
                logger.info(f"Reloading {kind}...")
                self._load_category(kind)
                reload_rules = True

        rules_source = self._sources[RULES]
        if rules_source.exists() and (reload_rules or self._is_changed(RULES)):
            logger.info("Reloading rules...")
            self._load_category(RULES)

    def _is_changed(self, kind: str) -> bool:
        source = self._sources[kind]
        if not source.exists():
            return False
        last = self._loaded_mtimes.get(kind, self._started_at)
        return source.mtime() > last

    def _load_category(self, kind: str) -> bool:
        """
        Load one category, all or nothing.

        The modification time is recorded before parsing so that a broken
        file is reported once rather than on every reload check.

        Returns:
            True if the new contents were swapped in
        """
        source = self._sources[kind]
        try:
            self._loaded_mtimes[kind] = source.mtime()
            data = source.load()
            if kind == EVENTS:
                events = load_events(data)
                self._events.replace(events)
                for name in events:
                    logger.info(f"* Loaded event: {name}")
                logger.info(f"Loaded {plural(len(events), 'event')}")
            elif kind == SCENES:
                scenes = load_scenes(data)
                self._scenes.replace(scenes)
                for name in scenes:
                    logger.info(f"* Loaded scene: {name}")
                logger.info(f"Loaded {plural(len(scenes), 'scene')}")
            else:
                rules = load_rules(data, self._events, self._scenes)
                self._rules = rules
                for rule in rules:
                    logger.info(f"* Loaded rule: {rule.name}")
                logger.info(f"Loaded {plural(len(rules), 'rule')}")
        except (ConfigError, OSError, TypeError, ValueError) as e:
            logger.error(f"Could not load {kind}: {e}")
            return False
        return True

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate_and_execute(self) -> PassResult:
        """
        Run one pass: evaluate every rule, pick the active ones, execute.

        Only the valid rules at the highest priority present are active;
        lower priority valid rules are suppressed for this pass.

        Returns:
            Counts of rules evaluated/valid/active/executed
        """
        result = PassResult()
        now = self._evaluator.now()

        logger.debug("Looking for active (and valid) rules...")
        for rule in self._rules:
            result.rules_evaluated += 1
            try:
                valid = self._evaluator.evaluate_all(rule.conditions, now)
            except Exception as e:
                logger.error(f'Error evaluating rule "{rule.name}": {e}', exc_info=True)
                result.errors.append(f"{rule.name}: {e}")
                valid = False
            rule.update_validity(valid)

        valid_rules = [rule for rule in self._rules if rule.validity]
        result.rules_valid = len(valid_rules)
        if not valid_rules:
            logger.debug("No valid rules found")
            return result
        logger.debug(
            f"There {'is' if len(valid_rules) == 1 else 'are'} "
            f"{plural(len(valid_rules), 'valid rule')}"
        )

        by_priority: Dict[int, List[Rule]] = {}
        for rule in valid_rules:
            by_priority.setdefault(rule.priority, []).append(rule)
        for priority in sorted(by_priority):
            names = ", ".join(r.name for r in by_priority[priority])
            logger.debug(f"* Priority {priority}: {names}")

        top = max(by_priority)
        active_rules = by_priority[top]
        result.active_priority = top
        result.rules_active = len(active_rules)
        if len(active_rules) != len(valid_rules):
            logger.debug(
                f"There {'is' if len(active_rules) == 1 else 'are'} only "
                f"{plural(len(active_rules), 'active rule')} (i.e. with priority {top})"
            )

        for rule in active_rules:
            if not rule.should_execute():
                logger.info(f'Rule "{rule.name}" is active, but has already been triggered')
                result.rules_skipped += 1
                continue

            if rule.trigger:
                logger.info(f'Rule "{rule.name}" is active and should be triggered')
            else:
                logger.info(f'Rule "{rule.name}" is active and should be triggered (again)')

            try:
                rule.execute(self._executor)
            except Exception as e:
                logger.error(f'Error executing rule "{rule.name}": {e}', exc_info=True)
                result.errors.append(f"{rule.name}: {e}")
                continue
            result.rules_executed += 1
            result.executed.append(rule.name)

        return result

    def shutdown(self) -> None:
        """Release resources held by the engine."""
        logger.info("Shutting down...")
        close = getattr(self._lighting, "close", None)
        if close is not None:
            close()
