"""Outside-plant network services: nodes, cables/cores, splices and GeoJSON."""

from spectra.services.network.cables import Cables, cables
from spectra.services.network.nodes import Nodes, nodes
from spectra.services.network.splices import Connections, connections

__all__ = [
    # Service instances
    "nodes",
    "cables",
    "connections",
    # Classes
    "Nodes",
    "Cables",
    "Connections",
]
