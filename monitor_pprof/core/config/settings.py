"""
Typed Settings
Author: Drmusab
Last Modified: 2026-10-19 09:44:18 UTC

Typed views over the YAML configuration sections used by the capture
pipeline and the REST API.
"""

import shlex
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from monitor_pprof.core.config.yaml_loader import YamlConfigLoader
from monitor_pprof.core.error_handling import ConfigurationError


@dataclass
class ControllerSettings:
    """Where and how to fetch traces from the diagnostics agent."""

    dotnet_monitor_url: Optional[str] = None
    default_duration_seconds: int = 30
    request_timeout_grace_seconds: float = 60.0
    temp_dir: Optional[str] = None
    trace_profile: str = "Cpu"

    def require_monitor_url(self) -> str:
        """Return the agent URL or raise if it is not configured."""
        if not self.dotnet_monitor_url:
            raise ConfigurationError(
                "controller.dotnet_monitor_url is not configured",
                config_key="controller.dotnet_monitor_url",
            )
        return self.dotnet_monitor_url


@dataclass
class DecoderSettings:
    """External trace conversion tool."""

    kind: str = "dotnet-trace"
    command: List[str] = field(default_factory=lambda: ["dotnet-trace"])


@dataclass
class ConversionSettings:
    """Options of the stack-source to pprof conversion."""

    flush_trailing_sample: bool = True
    warn_on_missing_thread_marker: bool = True


@dataclass
class OutputSettings:
    """Response encoding options."""

    compress: bool = True
    compression_level: int = 9


@dataclass
class ApiSettings:
    """REST server options."""

    host: str = "0.0.0.0"
    port: int = 8080
    cancel_on_disconnect: bool = True
    disconnect_poll_interval: float = 0.5


@dataclass
class ServiceSettings:
    """All settings of the service."""

    controller: ControllerSettings = field(default_factory=ControllerSettings)
    decoder: DecoderSettings = field(default_factory=DecoderSettings)
    conversion: ConversionSettings = field(default_factory=ConversionSettings)
    output: OutputSettings = field(default_factory=OutputSettings)
    api: ApiSettings = field(default_factory=ApiSettings)
    logging: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_loader(cls, loader: YamlConfigLoader) -> "ServiceSettings":
        """
        Build settings from a configuration loader.

        Args:
            loader: Loaded (or lazily loading) YAML configuration

        Returns:
            Populated settings
        """
        controller = loader.get_section("controller")
        profiling = loader.get_section("profiling")
        decoder = profiling.get("decoder", {})
        conversion = profiling.get("conversion", {})
        output = profiling.get("output", {})
        rest = loader.get_section("api").get("rest", {})

        return cls(
            controller=ControllerSettings(
                dotnet_monitor_url=controller.get("dotnet_monitor_url") or None,
                default_duration_seconds=int(controller.get("default_duration_seconds", 30)),
                request_timeout_grace_seconds=float(
                    controller.get("request_timeout_grace_seconds", 60)
                ),
                temp_dir=controller.get("temp_dir") or None,
                trace_profile=profiling.get("trace_profile", "Cpu"),
            ),
            decoder=DecoderSettings(
                kind=decoder.get("kind", "dotnet-trace"),
                command=_parse_command(decoder.get("command", "dotnet-trace")),
            ),
            conversion=ConversionSettings(
                flush_trailing_sample=bool(conversion.get("flush_trailing_sample", True)),
                warn_on_missing_thread_marker=bool(
                    conversion.get("warn_on_missing_thread_marker", True)
                ),
            ),
            output=OutputSettings(
                compress=bool(output.get("compress", True)),
                compression_level=int(output.get("compression_level", 9)),
            ),
            api=ApiSettings(
                host=rest.get("host", "0.0.0.0"),
                port=int(rest.get("port", 8080)),
                cancel_on_disconnect=bool(rest.get("cancel_on_disconnect", True)),
                disconnect_poll_interval=float(rest.get("disconnect_poll_interval", 0.5)),
            ),
            logging=loader.get_section("observability").get("logging", {}),
        )


def _parse_command(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        command = [str(part) for part in value]
    else:
        command = shlex.split(str(value or ""))

    if not command:
        raise ConfigurationError(
            "profiling.decoder.command must not be empty",
            config_key="profiling.decoder.command",
        )
    return command
