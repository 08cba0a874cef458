"""
Engine factory.

build_engine() constructs an EngineContext, installs the anomaly
rising-edge handler and returns the RuleManager that fronts it.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from home_rules.actions.gateway import DeviceGateway
from home_rules.config import EngineConfig
from home_rules.core.context import EngineContext
from home_rules.core.dispatch import DispatchExecutor
from home_rules.events.models import AnomalyEvent, AnomalyState, EdgeHandler
from home_rules.rules.descriptions import AnomalyDescriptionLookup
from home_rules.rules.manager import RuleManager

logger = logging.getLogger(__name__)


def make_anomaly_alert_handler(context: EngineContext) -> EdgeHandler:
    """
    Build the side-notification handler run on anomaly rising edges.

    The handler logs the edge and, when anomaly_alert_address is
    configured, submits a notification without waiting for it.
    """

    def handle(event: AnomalyEvent, state: AnomalyState) -> None:
        label = event.description.description if event.description else event.name
        logger.warning(f"Anomaly detected: {label}")

        address = context.config.anomaly_alert_address
        if not address:
            return
        message = f"{context.config.notification_prefix}: {label} detected"
        context.executor.submit(context.gateway.send_notification, address, message)

    return handle


def build_engine(
    gateway: DeviceGateway,
    config: Optional[EngineConfig] = None,
    executor: Optional[DispatchExecutor] = None,
    descriptions: Optional[AnomalyDescriptionLookup] = None,
    inventory: Optional[Iterable[Dict[str, Any]]] = None,
    sensor_names: Optional[Iterable[str]] = None,
) -> RuleManager:
    """
    Wire up a complete engine.

    Args:
        gateway: Device gateway for all Actions
        config: Engine configuration
        executor: Dispatch executor (thread pool when omitted)
        descriptions: Anomaly description lookup
        inventory: Device records to create Actions from
        sensor_names: Sensor names to create Events from

    Returns:
        RuleManager bound to the new context
    """
    context = EngineContext(
        gateway=gateway,
        config=config,
        executor=executor,
        descriptions=descriptions,
    )
    context.events.set_edge_handler(make_anomaly_alert_handler(context))

    if inventory is not None:
        context.actions.load_inventory(inventory)
    if sensor_names is not None:
        context.events.ingest_sensor_names(sensor_names)

    logger.info(
        f"Engine ready: {len(context.events)} events, {len(context.actions)} actions"
    )
    return RuleManager(context)
