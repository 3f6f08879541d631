"""
Container Configuration
Author: Drmusab
Last Modified: 2026-10-19 13:18:57 UTC

Registers the components of the capture service with the dependency
injection container.
"""

from typing import Optional

from monitor_pprof.core.config.settings import ServiceSettings
from monitor_pprof.core.config.yaml_loader import YamlConfigLoader
from monitor_pprof.core.dependency_injection import Container
from monitor_pprof.observability.profiling.capture import ProfileCaptureService
from monitor_pprof.observability.profiling.trace_client import TraceClient
from monitor_pprof.observability.profiling.trace_decoder import TraceDecoder, create_trace_decoder


def create_configured_container(config_loader: Optional[YamlConfigLoader] = None) -> Container:
    """
    Create a container with every service component registered.

    Args:
        config_loader: Configuration source; the packaged configuration is
            used when omitted

    Returns:
        Configured container
    """
    container = Container()
    container.register_instance(YamlConfigLoader, config_loader or YamlConfigLoader())

    container.register_factory(
        ServiceSettings, lambda c: ServiceSettings.from_loader(c.get(YamlConfigLoader))
    )
    container.register_factory(
        TraceClient,
        lambda c: TraceClient(c.get(ServiceSettings).controller.request_timeout_grace_seconds),
    )
    container.register_factory(
        TraceDecoder,
        lambda c: create_trace_decoder(
            c.get(ServiceSettings).decoder.kind, c.get(ServiceSettings).decoder.command
        ),
    )
    container.register_factory(
        ProfileCaptureService,
        lambda c: ProfileCaptureService(c.get(ServiceSettings), c.get(TraceClient), c.get(TraceDecoder)),
    )

    return container
