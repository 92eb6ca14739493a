"""
Type-safe configuration for the canvas using Pydantic Settings.

Values load from environment variables and an optional .env file.

Usage:
    from shared.config import config

    zoom = min(config.zoom_max, zoom * factor)
"""
from typing import Optional, Tuple
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CanvasConfig(BaseSettings):
    """
    Central configuration for the schema canvas and its execution engine.

    All configuration is loaded from environment variables or .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO", description="Log level for console loggers")

    # ============================================================================
    # API Keys
    # ============================================================================

    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key for agents and LLM tools")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key for Claude models")

    default_llm_model: str = Field(default="gpt-4o-mini", description="Model used by agents without an explicit model")
    default_llm_temperature: float = Field(default=0.7, description="Temperature used when an agent does not set one")

    # ============================================================================
    # Viewport
    # ============================================================================

    zoom_min: float = Field(default=0.2, gt=0, description="Lowest allowed canvas zoom")
    zoom_max: float = Field(default=3.0, gt=0, description="Highest allowed canvas zoom")
    default_view_x: float = Field(default=200.0, description="Canvas x offset after a view reset")
    default_view_y: float = Field(default=150.0, description="Canvas y offset after a view reset")
    default_zoom: float = Field(default=1.0, gt=0, description="Canvas zoom after a view reset")
    wheel_zoom_sensitivity: float = Field(default=0.001, description="Zoom change per wheel delta unit")

    # ============================================================================
    # Gestures & node geometry
    # ============================================================================

    long_press_ms: int = Field(default=500, ge=0, description="Hold time on a node before a connection starts")
    drag_threshold_px: float = Field(default=5.0, ge=0, description="Pointer travel that turns a node press into a drag")
    default_node_width: float = Field(default=170.0, gt=0, description="Node width used when a node was not measured")
    default_node_height: float = Field(default=40.0, gt=0, description="Node height used when a node was not measured")
    connection_point_radius: float = Field(default=8.0, ge=0, description="Hit radius of node input/output points (world units)")

    # ============================================================================
    # Execution
    # ============================================================================

    node_start_delay: float = Field(default=0.5, ge=0, description="Pause after a node is marked running (seconds)")
    node_settle_delay: float = Field(default=0.2, ge=0, description="Pause after a node succeeds, before its successors (seconds)")
    agent_max_rounds: int = Field(default=5, ge=1, description="Maximum model rounds an agent node may take")
    default_input_placeholder: str = Field(
        default="Initial input data for the schema.",
        description="Execution context used when no input node is configured",
    )

    # ============================================================================
    # Storage
    # ============================================================================

    storage_dir: str = Field(default="./data/canvas", description="Directory for JSON-backed repositories")
    persist_to_disk: bool = Field(default=True, description="Use JSON files instead of in-memory repositories in the API")

    @model_validator(mode="after")
    def _check_zoom_range(self) -> "CanvasConfig":
        if self.zoom_min > self.zoom_max:
            raise ValueError("zoom_min must not exceed zoom_max")
        if not self.zoom_min <= self.default_zoom <= self.zoom_max:
            raise ValueError("default_zoom must lie inside [zoom_min, zoom_max]")
        return self

    @property
    def zoom_range(self) -> Tuple[float, float]:
        return self.zoom_min, self.zoom_max

    @property
    def default_node_size(self) -> Tuple[float, float]:
        return self.default_node_width, self.default_node_height

    @property
    def long_press_seconds(self) -> float:
        return self.long_press_ms / 1000.0


# ============================================================================
# Global Config Instance
# ============================================================================

config = CanvasConfig()
