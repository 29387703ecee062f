import logging

from ranchhand.errors import ChannelError, ClusterAPIError, InventoryError
from ranchhand.modules.api import ClusterInfo, NodeSummary, OutboundEvent
from ranchhand.modules.channel import OutboundSink
from ranchhand.modules.cluster import ClusterAPI

logger = logging.getLogger("ranchhand.inventory")


class InventoryReporter:
    def __init__(self, cluster_api: ClusterAPI):
        """
        Initialize inventory reporter.

        Args:
            cluster_api: Cluster capability used to list nodes
        """
        self.cluster_api = cluster_api

    def collect_cluster_info(self) -> ClusterInfo:
        """
        Build the inventory payload from the current node list.

        Node order follows the cluster listing and nothing is cached; any
        failure aborts the whole report.

        Raises:
            InventoryError: If nodes could not be listed
        """
        try:
            nodes = self.cluster_api.list_nodes()
        except ClusterAPIError as e:
            raise InventoryError(str(e)) from e

        logger.info(f"Found {len(nodes)} nodes in the cluster")
        summaries = []
        for node in nodes:
            summary = NodeSummary(name=node["name"], status=node.get("status") or "")
            logger.debug(f"Node: {summary.name}, Status: {summary.status}")
            summaries.append(summary)

        return ClusterInfo(nodes=summaries)

    def report(self, sink: OutboundSink) -> bool:
        """
        Collect inventory and push it on the `info` event.

        Returns:
            True if the payload was handed to the channel, False otherwise
        """
        logger.info("Sending cluster info...")
        try:
            info = self.collect_cluster_info()
        except InventoryError as e:
            logger.error(f"Cluster info not sent: {e}")
            return False

        try:
            sink.push(
                OutboundEvent.INFO.value,
                info.model_dump(),
                on_ack=lambda response: logger.info(f"Cluster info sent successfully: {response}"),
            )
        except ChannelError as e:
            logger.error(f"Failed to send cluster info: {e}")
            return False
        return True
