"""
Action model.

An Action stands for one physical actuator (an AC unit, the lights of a room,
a notification channel). It observes the Rules whose action text it can
handle and, when one fires, decides whether a command really has to go out:

1. Idempotency: skip if the requested state matches what was last sent.
2. Arbitration: for conflict-prone kinds, ask the process-wide arbiter.
3. Send through the device gateway and, on success only, update the cache.

Dispatches to one Action are serialized by a per-action lock.
"""

import logging
import re
import threading
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from home_rules.core.errors import DispatchError, ParseError
from home_rules.core.observer import Observer

from .arbitration import ArbitrationDecision, Reservation

if TYPE_CHECKING:
    from home_rules.core.context import EngineContext
    from home_rules.rules.rule import RuleTrigger

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """Kinds of actuators."""

    CLIMATE = "climate"
    LIGHT = "light"
    NOTIFICATION = "notification"


class DispatchStatus(Enum):
    """Outcome of a dispatch attempt."""

    DISPATCHED = "dispatched"
    NO_OP = "no_op"  # Requested state already in place
    SUPPRESSED = "suppressed"  # Blocked by the arbiter
    FAILED = "failed"  # Gateway error


@dataclass
class ActionCommand:
    """Parsed action text: a command word plus kind-specific parameters."""

    command: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command, "params": dict(self.params)}


@dataclass
class ActionResult:
    """Result of one dispatch attempt, also kept in the engine history."""

    status: DispatchStatus
    message: str
    action_key: str
    requested_state: Dict[str, Any] = field(default_factory=dict)
    rule_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def success(self) -> bool:
        """True unless the gateway failed."""
        return self.status != DispatchStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "status": self.status.value,
            "message": self.message,
            "action_key": self.action_key,
            "requested_state": dict(self.requested_state),
            "rule_id": self.rule_id,
            "error": self.error,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionResult":
        """Deserialize from dict."""
        timestamp = data.get("timestamp")
        return cls(
            status=DispatchStatus(data["status"]),
            message=data.get("message", ""),
            action_key=data["action_key"],
            requested_state=data.get("requested_state", {}),
            rule_id=data.get("rule_id"),
            error=data.get("error"),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
        )


_WORD_RE = re.compile(r"[^\s\"',;:()?!]+")
_TEMPERATURE_RE = re.compile(r"^(\d+(?:\.\d+)?)(?:°c?|c)?$")

POWER_WORDS = {"on": True, "off": False}
FILLER_WORDS = frozenset({"to", "at", "set", "turn", "switch", "mode", "degree", "degrees", "the"})
# One action text may chain commands for several actuators
COMMAND_SEPARATORS = frozenset({"and", "then"})


def words_of(text: str) -> List[str]:
    """Lowercase words of an action text, punctuation and quotes dropped."""
    return [w.lower() for w in _WORD_RE.findall(text)]


def contains_phrase(text: str, phrase: str) -> bool:
    """True if phrase appears in text as whole words (case-insensitive)."""
    phrase = " ".join(phrase.lower().split())
    if not phrase:
        return False
    normalized = " ".join(words_of(text))
    return re.search(rf"(?<!\S){re.escape(phrase)}(?!\S)", normalized) is not None


def slugify(location: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", location.strip().lower()).strip("_")
    return slug or "any"


def _number(value: float) -> Any:
    return int(value) if float(value).is_integer() else value


def split_commands(words: List[str]) -> List[List[str]]:
    """Split action words into the commands chained with "and"/"then"."""
    segments: List[List[str]] = [[]]
    for word in words:
        if word in COMMAND_SEPARATORS:
            segments.append([])
        else:
            segments[-1].append(word)
    return [segment for segment in segments if segment]


def find_phrase(words: List[str], phrase: List[str]) -> int:
    """Index where phrase starts in words, or -1."""
    size = len(phrase)
    for i in range(len(words) - size + 1):
        if words[i : i + size] == phrase:
            return i
    return -1


def parse_power(
    segment: List[str], index: int, action_text: str, allowed: frozenset
) -> Tuple[Optional[bool], List[str]]:
    """
    Read on/off around the keyword at index.

    Returns the power and the words after the keyword that are not power
    words or in allowed.

    Raises:
        ParseError: If both on and off are given
    """
    power: Optional[bool] = None
    for word in segment[:index]:
        if word in POWER_WORDS:
            power = POWER_WORDS[word]

    rest = []
    for word in segment[index + 1 :]:
        if word in POWER_WORDS:
            if power is not None and power != POWER_WORDS[word]:
                raise ParseError(f"Both on and off in: {action_text}", text=action_text)
            power = POWER_WORDS[word]
        elif word not in allowed:
            rest.append(word)
    return power, rest


class Action(Observer["RuleTrigger"]):
    """
    Base actuator.

    Subclasses define the kind, the keywords that route action text to
    them, the command grammar and how a request is compared, named and sent.
    """

    kind: ActionKind
    keywords: Tuple[str, ...] = ()
    command_signature: str = ""

    def __init__(self, name: str, location: str, context: "EngineContext") -> None:
        self.name = name
        self.location = location
        self._context = context
        self.last_dispatched_state: Dict[str, Any] = {}
        self.last_dispatched_at: Optional[datetime] = None
        self._lock = threading.Lock()
        self._commands: Dict[str, ActionCommand] = {}  # Pre-parsed, by rule id

    @property
    def key(self) -> str:
        """Registry key: kind_location_command-signature."""
        return f"{self.kind.value}_{slugify(self.location)}_{self.command_signature}"

    # =========================================================================
    # Routing and parsing
    # =========================================================================

    def can_handle(self, action_text: str) -> bool:
        """True if one chained command names this Action's location and kind keyword."""
        return self.own_command(action_text) is not None

    def own_command(self, action_text: str) -> Optional[Tuple[List[str], int]]:
        """
        Find the chained command addressed to this Action.

        Picks the first command segment that names this Action's location and
        one of its keywords, preferring the keyword right after the location.

        Returns:
            The segment's words and the keyword's index in it, or None
        """
        location = words_of(self.location)
        for segment in split_commands(words_of(action_text)):
            positions = [i for i, word in enumerate(segment) if word in self.keywords]
            if not positions:
                continue
            if not location:
                return segment, positions[0]

            start = find_phrase(segment, location)
            if start < 0:
                continue
            after = start + len(location)
            return segment, after if after in positions else positions[0]
        return None

    @abstractmethod
    def parse_command(self, action_text: str) -> ActionCommand:
        """
        Parse action text into a command.

        Raises:
            ParseError: If the text is not a valid command for this kind
        """
        pass

    def attach_rule(self, rule_id: str, command: Optional[ActionCommand] = None) -> None:
        """Remember the pre-parsed command for a rule this Action observes."""
        if command is not None:
            self._commands[rule_id] = command

    def detach_rule(self, rule_id: str) -> None:
        self._commands.pop(rule_id, None)

    # =========================================================================
    # Dispatch
    # =========================================================================

    @abstractmethod
    def build_request(
        self, command: ActionCommand, trigger: Optional["RuleTrigger"] = None
    ) -> Dict[str, Any]:
        """Turn a command into the state to request from the gateway."""
        pass

    @abstractmethod
    def needs_dispatch(self, request: Dict[str, Any], now: datetime) -> bool:
        """True if the request differs from the dispatched state in a relevant field."""
        pass

    @abstractmethod
    def intent_of(self, request: Dict[str, Any]) -> str:
        """Short command signature recorded by the arbiter (e.g. "on 21 cool")."""
        pass

    @abstractmethod
    def send(self, request: Dict[str, Any]) -> bool:
        """Call the gateway."""
        pass

    def apply_dispatched(self, request: Dict[str, Any], now: datetime) -> None:
        """Merge a successfully sent request into the dispatched-state cache."""
        self.last_dispatched_state.update(request)
        self.last_dispatched_at = now

    def on_notify(self, subject: "RuleTrigger") -> ActionResult:
        return self.on_trigger(subject)

    def on_trigger(self, trigger: "RuleTrigger") -> ActionResult:
        """
        Handle a fired Rule.

        Uses the command pre-parsed when the rule was connected, falling back
        to parsing the rule's action text.
        """
        command = self._commands.get(trigger.rule_id)
        if command is None:
            logger.debug(f"No pre-parsed command for rule {trigger.rule_id}, parsing at runtime")
            command = self.parse_command(trigger.action_text)

        request = self.build_request(command, trigger)
        return self.dispatch(request, trigger=trigger)

    def dispatch(
        self,
        request: Dict[str, Any],
        trigger: Optional["RuleTrigger"] = None,
        now: Optional[datetime] = None,
    ) -> ActionResult:
        """
        Run the idempotency/anti-flap pipeline and send the request.

        Args:
            request: Kind-specific requested state
            trigger: Firing rule context (optional)
            now: Current time (for testing)

        Returns:
            Result describing what happened
        """
        rule_id = trigger.rule_id if trigger else None

        with self._lock:
            now = now or self._context.now()

            if not self.needs_dispatch(request, now):
                result = self._result(DispatchStatus.NO_OP, "Already in requested state", request, rule_id, now)
                logger.debug(f"{self.key}: no-op for {request}")
                self._context.record(result)
                return result

            reservation: Optional[Reservation] = None
            if self.kind.value in self._context.config.conflict_kinds:
                decision, reservation = self._context.arbiter.acquire(
                    self.kind.value, self.intent_of(request), self.key, now
                )
                if decision == ArbitrationDecision.CONFLICT:
                    result = self._result(
                        DispatchStatus.SUPPRESSED,
                        "Suppressed: conflicting recent intent",
                        request,
                        rule_id,
                        now,
                    )
                    self._context.record(result)
                    return result
                if decision == ArbitrationDecision.RATE_LIMITED:
                    result = self._result(
                        DispatchStatus.SUPPRESSED,
                        "Suppressed: same intent sent too recently",
                        request,
                        rule_id,
                        now,
                    )
                    self._context.record(result)
                    return result

            error: Optional[DispatchError] = None
            try:
                if not self.send(request):
                    error = DispatchError(f"Gateway rejected {self.intent_of(request)}", self.key)
            except Exception as e:
                error = DispatchError(f"Gateway call failed: {e}", self.key, e)

            if error is not None:
                if reservation is not None:
                    self._context.arbiter.release(reservation)
                logger.error(f"{self.key}: dispatch failed: {error.message}")
                result = self._result(DispatchStatus.FAILED, error.message, request, rule_id, now)
                result.error = error.message
                self._context.record(result)
                return result

            self.apply_dispatched(request, now)
            logger.info(f"{self.key}: dispatched {self.intent_of(request)}")
            result = self._result(DispatchStatus.DISPATCHED, "Dispatched", request, rule_id, now)
            self._context.record(result)
            return result

    def _result(
        self,
        status: DispatchStatus,
        message: str,
        request: Dict[str, Any],
        rule_id: Optional[str],
        now: datetime,
    ) -> ActionResult:
        return ActionResult(
            status=status,
            message=message,
            action_key=self.key,
            requested_state=dict(request),
            rule_id=rule_id,
            timestamp=now,
        )

    # =========================================================================
    # State
    # =========================================================================

    def dump_state(self) -> Dict[str, Any]:
        """Export the dispatched-state cache."""
        return {
            "last_dispatched_state": dict(self.last_dispatched_state),
            "last_dispatched_at": (
                self.last_dispatched_at.isoformat() if self.last_dispatched_at else None
            ),
        }

    def restore_state(self, state: Dict[str, Any]) -> None:
        self.last_dispatched_state = dict(state.get("last_dispatched_state", {}))
        at = state.get("last_dispatched_at")
        self.last_dispatched_at = datetime.fromisoformat(at) if at else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "kind": self.kind.value,
            "location": self.location,
            **self.dump_state(),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


class ClimateAction(Action):
    """
    AC unit.

    Grammar: "<location> ac on|off [<temperature>] [<mode>]", temperature and
    mode in any order. Only power is compared unless temperature or mode is
    requested explicitly.
    """

    kind = ActionKind.CLIMATE
    keywords = ("ac",)
    command_signature = "power+temperature+mode"

    def parse_command(self, action_text: str) -> ActionCommand:
        found = self.own_command(action_text)
        if found is None:
            raise ParseError(f"Not a climate command for {self.location}: {action_text}", text=action_text)
        segment, index = found

        power, rest = parse_power(segment, index, action_text, FILLER_WORDS)
        params: Dict[str, Any] = {}
        for word in rest:
            match = _TEMPERATURE_RE.match(word)
            if match:
                if "temperature" in params:
                    raise ParseError(f"More than one temperature in: {action_text}", text=action_text)
                params["temperature"] = _number(float(match.group(1)))
            elif word in self._context.config.climate_modes:
                if "mode" in params:
                    raise ParseError(f"More than one mode in: {action_text}", text=action_text)
                params["mode"] = word
            else:
                raise ParseError(f"Unexpected word {word!r} in climate command", text=action_text)

        if power is None:
            raise ParseError(f"Climate command needs on or off: {action_text}", text=action_text)

        if not power:
            params = {}
        return ActionCommand(command="on" if power else "off", params=params)

    def build_request(self, command, trigger=None):
        request: Dict[str, Any] = {"on": command.command == "on"}
        request.update(command.params)
        return request

    def needs_dispatch(self, request: Dict[str, Any], now: datetime) -> bool:
        last = self.last_dispatched_state
        if not last or last.get("on") != request["on"]:
            return True
        return any(
            name in request and last.get(name) != request[name]
            for name in ("temperature", "mode")
        )

    def intent_of(self, request: Dict[str, Any]) -> str:
        parts = ["on" if request["on"] else "off"]
        if "temperature" in request:
            parts.append(str(request["temperature"]))
        if "mode" in request:
            parts.append(request["mode"])
        return " ".join(parts)

    def send(self, request: Dict[str, Any]) -> bool:
        return self._context.gateway.set_climate_state(self.location, dict(request))


class LightAction(Action):
    """Lights of a room. Grammar: "<location> light(s) on|off"."""

    kind = ActionKind.LIGHT
    keywords = ("light", "lights")
    command_signature = "power"

    def parse_command(self, action_text: str) -> ActionCommand:
        found = self.own_command(action_text)
        if found is None:
            raise ParseError(f"Not a light command for {self.location}: {action_text}", text=action_text)
        segment, index = found

        power, rest = parse_power(segment, index, action_text, FILLER_WORDS)
        if rest:
            raise ParseError(f"Unexpected word {rest[0]!r} in light command", text=action_text)
        if power is None:
            raise ParseError(f"Light command needs on or off: {action_text}", text=action_text)
        return ActionCommand(command="on" if power else "off")

    def build_request(self, command, trigger=None):
        return {"on": command.command == "on"}

    def needs_dispatch(self, request: Dict[str, Any], now: datetime) -> bool:
        return self.last_dispatched_state.get("on") != request["on"]

    def intent_of(self, request: Dict[str, Any]) -> str:
        return "on" if request["on"] else "off"

    def send(self, request: Dict[str, Any]) -> bool:
        return self._context.gateway.set_light_state(self.location, request["on"])


_ADDRESS = r"(?!saying\b|message\b)([+\w@.\-]+)"
_ADDRESS_PATTERNS = (
    ("sms", re.compile(rf"\bsend\s+sms\s+to\s+{_ADDRESS}", re.IGNORECASE)),
    ("notification", re.compile(rf"\bsend\s+notification\s+to\s+{_ADDRESS}", re.IGNORECASE)),
    ("whatsapp", re.compile(rf"\bsend\s+whatsapp\s+to\s+{_ADDRESS}", re.IGNORECASE)),
    ("sms", re.compile(rf"\bnotify\s+{_ADDRESS}", re.IGNORECASE)),
)
_QUOTED_RE = re.compile(r"(?<!\w)\"([^\"]*)\"(?!\w)|(?<!\w)'([^']*)'(?!\w)")
_MESSAGE_RE = re.compile(r"\b(?:saying|message)\s+(.+)$", re.IGNORECASE)


class NotificationAction(Action):
    """
    Notification channel (SMS, WhatsApp).

    Grammar: "send sms|notification|whatsapp to <address>" or
    "notify <address>", optionally followed by a quoted message or
    "saying <message>". Without a message, one is derived from the firing
    rule's condition. Without an address, the configured default is used.
    """

    kind = ActionKind.NOTIFICATION
    keywords = ("send sms to", "send notification to", "send whatsapp to", "notify")
    command_signature = "notify"

    def can_handle(self, action_text: str) -> bool:
        return any(contains_phrase(action_text, k) for k in self.keywords)

    def parse_command(self, action_text: str) -> ActionCommand:
        if not any(contains_phrase(action_text, k) for k in self.keywords):
            raise ParseError(f"Not a notification command: {action_text}", text=action_text)

        channel = "sms"
        address: Optional[str] = None
        for pattern_channel, pattern in _ADDRESS_PATTERNS:
            match = pattern.search(action_text)
            if match:
                channel, address = pattern_channel, match.group(1)
                break

        if address is None:
            address = self._context.config.default_notification_address
        if not address:
            raise ParseError(f"No notification address in: {action_text}", text=action_text)

        params: Dict[str, Any] = {"address": address, "channel": channel}
        quoted = _QUOTED_RE.search(action_text)
        if quoted:
            params["message"] = quoted.group(1) if quoted.group(1) is not None else quoted.group(2)
        else:
            message = _MESSAGE_RE.search(action_text)
            if message:
                params["message"] = message.group(1).strip()

        return ActionCommand(command="send", params=params)

    def build_request(self, command, trigger=None):
        message = command.params.get("message")
        if not message:
            prefix = self._context.config.notification_prefix
            subject = trigger.condition_text if trigger else "manual test"
            message = f"{prefix}: {subject}"
        return {
            "address": command.params["address"],
            "channel": command.params.get("channel", "sms"),
            "message": message,
        }

    def needs_dispatch(self, request: Dict[str, Any], now: datetime) -> bool:
        last = self.last_dispatched_state
        if last.get("address") != request["address"] or last.get("message") != request["message"]:
            return True
        if self.last_dispatched_at is None:
            return True
        elapsed = (now - self.last_dispatched_at).total_seconds()
        return elapsed >= self._context.config.notification_repeat_seconds

    def intent_of(self, request: Dict[str, Any]) -> str:
        return f"{request['address']} {request['message']}"

    def apply_dispatched(self, request: Dict[str, Any], now: datetime) -> None:
        self.last_dispatched_state = dict(request)
        self.last_dispatched_at = now

    def send(self, request: Dict[str, Any]) -> bool:
        return self._context.gateway.send_notification(request["address"], request["message"])


ACTION_CLASSES = {
    ActionKind.CLIMATE: ClimateAction,
    ActionKind.LIGHT: LightAction,
    ActionKind.NOTIFICATION: NotificationAction,
}

# Device inventory type names
KIND_ALIASES = {
    "ac": ActionKind.CLIMATE,
    "climate": ActionKind.CLIMATE,
    "light": ActionKind.LIGHT,
    "lights": ActionKind.LIGHT,
    "sms": ActionKind.NOTIFICATION,
    "whatsapp": ActionKind.NOTIFICATION,
    "notification": ActionKind.NOTIFICATION,
}
