"""
Wires the data relay link to its collaborators.

build_data_relay() is the usual way to get a working link: it loads the network configuration when none
is given, and creates the status register, telemetry model, packet parser, transport registry and
discovery that the link needs.
"""
import logging

from groundlink.config.config import LinkConfig, load_link_config
from groundlink.discovery.broadcast import BroadcastDiscovery
from groundlink.link import DataRelayLink
from groundlink.status import StatusRegister
from groundlink.telemetry.model import TelemetryData
from groundlink.telemetry.packets import PacketParser
from groundlink.transport.registry import TransportRegistry

logger = logging.getLogger(__name__)


def build_data_relay(config: LinkConfig=None, directory=None) -> DataRelayLink:
    """
    Creates a data relay link. The link is not started.
    :param config: the link settings. Loaded from the network configuration files when None.
    :param directory: where to find the configuration files. Defaults to the files in groundlink.config.
    """
    if config is None:
        config = load_link_config(directory)
    packet_parser = PacketParser()
    telemetry = TelemetryData(max_listeners=config.telemetrydata_max_listeners, packet_parser=packet_parser)
    link = DataRelayLink(telemetry, TransportRegistry(), StatusRegister(), packet_parser, config,
                         BroadcastDiscovery(config.datarelay_port))
    logger.debug("built data relay link with %s" % config)
    return link
