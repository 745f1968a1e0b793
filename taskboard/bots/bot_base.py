"""
Board bot plumbing
──────────────────
What a Telegram front end needs before a command reaches the board.

    BotConfig       - the bot's section of taskboard.yaml plus client settings
    ParamValidator  - turns raw command arguments into typed values
    AuditLogger     - one JSON line per command outcome
    BotBase         - auth, parsing, confirmation and help around perform()

Needs python-telegram-bot 20, PyYAML and requests. board_bot.py holds the
concrete bot.
"""

import json
import logging
import os
import re
import sys
import time
import uuid
from datetime import date, datetime, timezone
from pathlib import Path

import yaml
from telegram import Update, BotCommand
from telegram.ext import Application, CommandHandler, ContextTypes

from taskboard.api import ApiClient
from taskboard.config import ClientConfig
from taskboard.errors import ConfigError, DragInProgress, ValidationError
from taskboard.session import AuthSession
from taskboard.store import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_LOG = "~/.local/share/taskboard/audit.jsonl"
REPLY_LIMIT = 3500      # Telegram caps a message at 4096 characters


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Utilities
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def utc_now() -> str:
    """Second-precision UTC stamp, e.g. 2024-05-01T09:30:00Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_action_id() -> str:
    """act-<epoch ms>-<8 hex chars>; ids sort by creation time."""
    return f"act-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def truncate(text: str, max_chars: int = REPLY_LIMIT) -> str:
    overflow = len(text) - max_chars
    if overflow <= 0:
        return text
    return f"{text[:max_chars]}\n…[truncated, {overflow} chars omitted]"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BotConfig: configuration loader
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BotConfig:
    """
    Settings for one named bot.

    The bot's block under `bots:` supplies the Telegram token variable,
    the user allowlist and the command table. The shared `client:` block
    becomes a ClientConfig, the same one the CLI uses, so the bot talks to
    the same backend and state database.
    """

    def __init__(self, config_path: str, bot_name: str):
        raw = self._read(config_path)

        bots = raw.get("bots", {})
        if bot_name not in bots:
            raise ConfigError(
                f"Bot '{bot_name}' not found in config. "
                f"Available: {list(bots.keys())}"
            )
        self.bot_name = bot_name
        self.bot_cfg = bots[bot_name]
        self.global_cfg = raw.get("global", {})

        self.client = ClientConfig.from_dict(raw.get("client", {}))
        self.client.resolve()

        self.token = self._telegram_token()
        api_token_env = self.bot_cfg.get("api_token_env")
        self.api_token = os.environ.get(api_token_env) if api_token_env else None

        self.allowed_users = [str(uid) for uid in self.bot_cfg.get("allowed_users", [])]
        self.commands = self.bot_cfg.get("commands", {})
        self.audit_log = self._audit_log_path()

    @staticmethod
    def _read(config_path: str) -> dict:
        try:
            with open(config_path) as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config {config_path}: {e}") from e

    def _telegram_token(self) -> str:
        env_name = self.bot_cfg.get("token_env")
        if not env_name:
            raise ConfigError(f"Bot '{self.bot_name}' has no token_env configured")
        token = os.environ.get(env_name)
        if not token:
            raise ConfigError(
                f"Environment variable {env_name} is not set. "
                f"Export it with the token @BotFather issued for this bot."
            )
        return token

    def _audit_log_path(self) -> Path:
        """Configured location, or ./logs/audit.jsonl when that is not writable."""
        configured = Path(os.path.expanduser(self.global_cfg.get("audit_log", DEFAULT_AUDIT_LOG)))
        for path in (configured, Path.cwd() / "logs" / "audit.jsonl"):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.touch(exist_ok=True)
            except PermissionError:
                logger.warning(f"Audit log {path} is not writable")
                continue
            return path
        raise ConfigError(f"No writable audit log location (configured: {configured})")

    def is_authorized(self, user_id: int) -> bool:
        return str(user_id) in self.allowed_users

    def get_command(self, name: str) -> dict | None:
        return self.commands.get(name)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ParamValidator: input validation & coercion
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ParamValidator:
    """
    Checks raw command arguments against a command's `params` block.

    Per-parameter keys: type (string, integer or date), required, default,
    allowed, pattern, min_length, min, max and clearable. A clearable date
    also accepts the word `none` and comes back as "" so the caller can
    blank the field.
    """

    TYPES = ("string", "integer", "date")
    CLEAR_WORD = "none"

    def validate(self, params: dict, schema: dict) -> dict:
        """Return the typed arguments, or raise ValidationError naming the bad one."""
        unknown = set(params) - set(schema)
        if unknown:
            raise ValidationError(f"Unknown parameters: {', '.join(sorted(unknown))}")

        result = {}
        for name, rules in schema.items():
            value = params.get(name)
            if value is None or value == "":
                if rules.get("required", False):
                    raise ValidationError(f"Missing required parameter: {name}")
                if rules.get("default") is not None:
                    result[name] = rules["default"]
                continue

            kind = rules.get("type", "string")
            if kind not in self.TYPES:
                raise ValidationError(f"Unknown parameter type in schema: {kind}")
            result[name] = getattr(self, f"_as_{kind}")(name, value, rules)
        return result

    def _as_string(self, name: str, value, rules: dict) -> str:
        value = str(value)
        allowed = rules.get("allowed")
        if allowed and value not in allowed:
            raise ValidationError(
                f"Invalid value for {name}: '{value}'. "
                f"Allowed: {', '.join(str(a) for a in allowed)}"
            )
        pattern = rules.get("pattern")
        if pattern and not re.fullmatch(pattern, value):
            raise ValidationError(
                f"Invalid format for {name}: '{value}' does not match pattern {pattern}"
            )
        min_length = rules.get("min_length")
        if min_length is not None and len(value) < min_length:
            raise ValidationError(f"Parameter {name} must be at least {min_length} characters")
        return value

    def _as_integer(self, name: str, value, rules: dict) -> int:
        try:
            number = int(value)
        except (ValueError, TypeError):
            raise ValidationError(f"Parameter {name} must be an integer, got: '{value}'")
        low, high = rules.get("min"), rules.get("max")
        if low is not None and number < low:
            raise ValidationError(f"Parameter {name} must be >= {low}, got: {number}")
        if high is not None and number > high:
            raise ValidationError(f"Parameter {name} must be <= {high}, got: {number}")
        return number

    def _as_date(self, name: str, value, rules: dict) -> str:
        """YYYY-MM-DD, kept as a string."""
        text = str(value)
        clearable = rules.get("clearable", False)
        if clearable and text.lower() == self.CLEAR_WORD:
            return ""
        try:
            date.fromisoformat(text)
        except ValueError:
            expected = f"YYYY-MM-DD or '{self.CLEAR_WORD}'" if clearable else "YYYY-MM-DD"
            raise ValidationError(f"Parameter {name} must be a date ({expected}), got: '{text}'")
        return text


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# AuditLogger: structured JSON audit trail
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class AuditLogger:
    """JSON-lines trail with one object per command state change."""

    def __init__(self, log_path: Path):
        self.log_path = log_path

    def log(
        self,
        user_id: int,
        username: str,
        bot: str,
        command: str,
        action_id: str,
        status: str,
        **extra,
    ):
        """Extra fields are written as given; those set to None are left out."""
        entry = {
            "ts": utc_now(),
            "user_id": user_id,
            "username": username,
            "bot": bot,
            "command": command,
            "action_id": action_id,
            "status": status,
        }
        entry.update({k: v for k, v in extra.items() if v is not None})
        line = json.dumps(entry, ensure_ascii=False)
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error(f"Audit entry {action_id} for /{command} not written: {e}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BotBase: base class for board bots
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BotBase:
    """
    Routes every configured command to perform().

    A subclass passes its config path and bot name to __init__, implements
    perform(update, command_name, params) returning the reply text, and
    calls run(). On the way in, handle_command checks the sender against
    the allowlist, splits the message into arguments, validates them and,
    for commands marked require_confirmation, parks them until /confirm.
    Each step lands in the audit log.
    """

    def __init__(self, config_path: str, bot_name: str):
        self.cfg = BotConfig(config_path, bot_name)
        self.validator = ParamValidator()
        self.audit = AuditLogger(self.cfg.audit_log)

        # Backend client, shared by every chat user of this bot
        self.store = LocalStore(self.cfg.client.state_db)
        self.session = AuthSession(self.store)
        if self.cfg.api_token:
            self.session.token = self.cfg.api_token
        else:
            self.session.restore()
        self.api = ApiClient(
            self.cfg.client.api_url,
            token_provider=self.session.get_token,
            timeout=self.cfg.client.request_timeout,
        )

        # user_id → {action_id, command, params}
        self._pending_confirms: dict[int, dict] = {}

        logging.basicConfig(
            level=getattr(logging, str(self.cfg.client.log_level).upper(), logging.INFO),
            format=f"%(asctime)s [{bot_name}] %(levelname)s: %(message)s",
            handlers=[logging.StreamHandler(sys.stdout)],
        )

    # ──────────────────────────────────────────
    # Auth + parsing helpers
    # ──────────────────────────────────────────

    def _is_authorized(self, update: Update) -> bool:
        return self.cfg.is_authorized(update.effective_user.id)

    async def _reject_unauthorized(self, update: Update):
        """Audit the attempt and refuse the sender."""
        user = update.effective_user
        logger.warning(
            f"Unauthorized access attempt: user_id={user.id}, "
            f"username={user.username}, name={user.full_name}"
        )
        self.audit.log(
            user_id=user.id,
            username=user.username or "",
            bot=self.cfg.bot_name,
            command="UNAUTHORIZED",
            action_id="",
            status="rejected",
        )
        await update.message.reply_text(
            "⛔ Unauthorized. This incident has been logged."
        )

    @staticmethod
    def _command_name(text: str) -> str:
        """'/addcard@my_bot col1 …' → 'addcard'."""
        head = text.split(maxsplit=1)[0] if text.strip() else ""
        return head.lstrip("/").split("@", 1)[0].lower()

    def _parse_command_args(self, text: str, command_schema: dict) -> dict:
        """
        Split a command message into raw string arguments.

        Bare words fill parameters in schema order. A word of the form
        key=value sets that parameter directly, but only when `key` is in
        the schema; otherwise it is an ordinary word.

        A parameter marked `rest: true` takes every remaining positional
        word, so titles can contain spaces:
            /addcard col1 Fix the login page priority=high
        """
        parts = text.split()[1:]
        schema_keys = list(command_schema.keys())
        result = {}
        rest_words = []
        rest_key = None
        positional_idx = 0

        for part in parts:
            key, sep, value = part.partition("=")
            if sep and key in command_schema:
                result[key] = value
            elif rest_key is not None:
                rest_words.append(part)
            elif positional_idx < len(schema_keys):
                name = schema_keys[positional_idx]
                positional_idx += 1
                if command_schema[name].get("rest"):
                    rest_key = name
                    rest_words.append(part)
                else:
                    result[name] = part

        if rest_key is not None:
            result[rest_key] = " ".join(rest_words)

        return result

    # ──────────────────────────────────────────
    # Core command execution flow
    # ──────────────────────────────────────────

    async def handle_command(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Entry point for every configured command."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        text = update.message.text or ""
        command_name = self._command_name(text)
        cmd_cfg = self.cfg.get_command(command_name) or {}
        raw = self._parse_command_args(text, cmd_cfg.get("params", {}))
        await self.execute_command(update, command_name, raw)

    async def execute_command(
        self,
        update: Update,
        command_name: str,
        raw_params: dict,
    ):
        """
        Validate params, check if confirmation is required, then perform.

        This is the common flow for all commands.
        """
        user = update.effective_user
        cmd_cfg = self.cfg.get_command(command_name)

        if not cmd_cfg:
            await update.message.reply_text(
                f"❌ Unknown command: {command_name}"
            )
            return

        # ── Validate parameters ──
        try:
            params = self.validator.validate(
                raw_params, cmd_cfg.get("params", {})
            )
        except ValidationError as e:
            await update.message.reply_text(f"⚠️ {e}")
            return

        action_id = make_action_id()

        if cmd_cfg.get("require_confirmation", False):
            self._pending_confirms[user.id] = {
                "action_id": action_id,
                "command": command_name,
                "params": params,
            }

            summary = self._format_confirm_summary(command_name, params)
            await update.message.reply_text(
                f"⚠️ Confirmation required\n\n{summary}\n\n"
                "Reply /confirm to proceed or /cancel to abort."
            )
            return

        await self._run_action(update, action_id, command_name, params)

    async def _run_action(
        self,
        update: Update,
        action_id: str,
        command_name: str,
        params: dict,
    ):
        """Perform the command, audit the outcome, reply."""
        user = update.effective_user

        try:
            reply = await self.perform(update, command_name, params)
            status = "complete"
        except (ValidationError, DragInProgress) as e:
            reply = f"⚠️ {e}"
            status = "rejected"

        self.audit.log(
            user_id=user.id,
            username=user.username or "",
            bot=self.cfg.bot_name,
            command=command_name,
            action_id=action_id,
            status=status,
            params=params,
        )

        if reply:
            await update.message.reply_text(truncate(reply))

    async def perform(self, update: Update, command_name: str, params: dict) -> str:
        """Run one validated command and return the reply text."""
        raise NotImplementedError

    # ──────────────────────────────────────────
    # Confirmation handlers
    # ──────────────────────────────────────────

    async def handle_confirm(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Handle /confirm: execute a previously-held command."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        user = update.effective_user
        pending = self._pending_confirms.pop(user.id, None)

        if not pending:
            await update.message.reply_text(
                "ℹ️ Nothing pending confirmation."
            )
            return

        self.audit.log(
            user_id=user.id,
            username=user.username or "",
            bot=self.cfg.bot_name,
            command=pending["command"],
            action_id=pending["action_id"],
            status="confirmed",
        )

        await self._run_action(
            update,
            action_id=pending["action_id"],
            command_name=pending["command"],
            params=pending["params"],
        )

    async def handle_cancel(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Handle /cancel: discard a confirmation-held command."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        user = update.effective_user
        pending = self._pending_confirms.pop(user.id, None)

        if not pending:
            await update.message.reply_text(
                "ℹ️ Nothing pending to cancel."
            )
            return

        self.audit.log(
            user_id=user.id,
            username=user.username or "",
            bot=self.cfg.bot_name,
            command=pending["command"],
            action_id=pending["action_id"],
            status="cancelled",
        )

        await update.message.reply_text(
            f"❌ Cancelled /{pending['command']}."
        )

    # ──────────────────────────────────────────
    # Help handler
    # ──────────────────────────────────────────

    def format_help(self) -> str:
        """Usage text generated from the config schema."""
        lines = [f"{self.cfg.bot_name} — Commands\n"]

        for cmd_name, cmd_cfg in self.cfg.commands.items():
            desc = cmd_cfg.get("description", "")
            params = cmd_cfg.get("params", {})
            param_parts = []

            for p_name, p_schema in params.items():
                required = p_schema.get("required", False)
                default = p_schema.get("default")
                label = f"{p_name}…" if p_schema.get("rest") else p_name
                if required:
                    param_parts.append(f"<{label}>")
                elif default is not None:
                    param_parts.append(f"[{p_name}={default}]")
                else:
                    param_parts.append(f"[{label}]")

            param_str = " ".join(param_parts)
            lines.append(f"/{cmd_name} {param_str}".rstrip())
            lines.append(f"  ↳ {desc}\n")

        lines.append("/confirm — confirm a pending action")
        lines.append("/cancel — cancel a pending action")
        lines.append("/help — show this message")
        return "\n".join(lines)

    async def handle_help(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Handle /help: auto-generate usage from config schema."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        await update.message.reply_text(self.format_help())

    # ──────────────────────────────────────────
    # Formatting helpers
    # ──────────────────────────────────────────

    def _format_confirm_summary(self, command: str, params: dict) -> str:
        """Format a confirmation prompt with command details."""
        parts = [f"Command: /{command}"]
        for k, v in params.items():
            parts.append(f"{k}: {v}")
        return "\n".join(parts)

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────

    def register_handlers(self, app: Application):
        """
        Register base command handlers plus one handler per configured
        command. Subclasses adding their own handlers MUST call super().
        """
        app.add_handler(CommandHandler("help", self.handle_help))
        app.add_handler(CommandHandler("start", self.handle_help))
        app.add_handler(CommandHandler("confirm", self.handle_confirm))
        app.add_handler(CommandHandler("cancel", self.handle_cancel))
        for cmd_name in self.cfg.commands:
            app.add_handler(CommandHandler(cmd_name, self.handle_command))

    async def set_bot_commands(self, app: Application):
        """Set command suggestions in Telegram UI (autocomplete menu)."""
        commands = []
        for cmd_name, cmd_cfg in self.cfg.commands.items():
            desc = cmd_cfg.get("description", cmd_name)
            commands.append(BotCommand(cmd_name, desc[:256]))
        commands.append(BotCommand("help", "Show available commands"))
        await app.bot.set_my_commands(commands)

    def run(self):
        """Build Telegram Application, register handlers, and start polling."""
        app = Application.builder().token(self.cfg.token).build()
        self.register_handlers(app)

        async def post_init(application):
            await self.set_bot_commands(application)

        app.post_init = post_init
        logger.info(f"Starting {self.cfg.bot_name}…")
        app.run_polling(drop_pending_updates=True)
