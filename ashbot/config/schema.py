"""Configuration schema using Pydantic."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MatrixConfig(BaseModel):
    """Matrix account configuration."""
    homeserver: str = ""  # Matrix homeserver URL
    user_id: str = ""  # Bot user ID (@bot:server.com)
    password: str = ""  # Password (used when no stored credentials exist)
    access_token: str = ""  # Access token (skips password login)
    device_id: str = ""  # Device ID for E2EE session persistence
    device_name: str = "ashbot"
    store_path: str = "data/nio"  # matrix-nio crypto store directory
    enable_encryption: bool = True
    sync_timeout_ms: int = 30000


class RoomConfig(BaseModel):
    """A monitored room and its policy."""
    id: str
    comment: str = ""  # Human-readable room name used in logs and exports
    hook: str = ""  # Webhook URL for links posted in this room
    key: str = ""  # Bearer key for the webhook
    send_user: bool = False  # Include the sender in hook payloads
    send_topic: bool = False  # Include the room in hook payloads
    # None = commands disabled, [] = every command allowed
    allowed_commands: list[str] | None = None


class StorageConfig(BaseModel):
    """Database and export paths."""
    db_path: str = "data/messages.db"
    meta_db_path: str = "data/meta.db"
    links_path: str = "data/links.json"
    blacklist_path: str = "blacklist.json"


class BotConfig(BaseModel):
    """Command handling configuration."""
    config_path: str = "bot.json"  # Command catalog document
    reply_label: str = ""  # Overrides the catalog label when set
    linkstash_url: str = ""
    articles_url: str = "https://linkstash.hsp-ec.xyz/api"
    timezone: str = "UTC"  # Start-of-day for the yap leaderboard
    dry_run: bool = False
    opt_out_tag: str = ""
    command_prefix: str = "/bot"
    mention_aliases: dict[str, str] = Field(default_factory=lambda: {"@gork": "gork"})
    greeting_command: str = "hi"  # Default command, always allowed
    state_ttl_seconds: float = 300.0  # Knock-knock exchange eviction
    http_timeout_seconds: float = 8.0
    exec_timeout_seconds: float = 60.0
    tmp_dir: str = "data/tmp"


class ProviderConfig(BaseModel):
    """OpenAI-compatible completion endpoint."""
    api_key: str = ""
    api_base: str = "https://api.groq.com/openai/v1"
    default_model: str = "openai/gpt-oss-120b"
    default_max_tokens: int = 300


class ProvidersConfig(BaseModel):
    """Configuration for AI providers."""
    groq: ProviderConfig = Field(default_factory=ProviderConfig)


class Config(BaseSettings):
    """Root configuration for ashbot."""
    model_config = SettingsConfigDict(
        env_prefix="ASHBOT_",
        env_nested_delimiter="__",
    )

    matrix: MatrixConfig = Field(default_factory=MatrixConfig)
    rooms: list[RoomConfig] = Field(default_factory=list)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    bot: BotConfig = Field(default_factory=BotConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    debug: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values read from config.json
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def find_room(self, room_id: str) -> RoomConfig | None:
        """Get the configuration entry for a room, if it is listed."""
        for room in self.rooms:
            if room.id == room_id:
                return room
        return None

    def is_monitored(self, room_id: str) -> bool:
        """
        Check if messages from a room should be processed.

        An empty room list monitors everything.
        """
        if not self.rooms:
            return True
        return self.find_room(room_id) is not None

    def explicit_reply_label(self, catalog_label: str = "") -> str:
        """
        Get the configured reply label, or "" when none is set.

        Only an explicit label marks messages as bot output.
        """
        return self.bot.reply_label or catalog_label

    def resolve_reply_label(self, catalog_label: str = "") -> str:
        """
        Get the prefix stamped on bot messages.

        Precedence: bot.reply_label, then the catalog label, then "> ".
        """
        return self.explicit_reply_label(catalog_label) or "> "
