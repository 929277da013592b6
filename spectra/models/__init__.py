from spectra.models.customer import Customer, CustomerStatus, rx_power_status  # noqa: F401
from spectra.models.network import (  # noqa: F401
    AssetStatus,
    Cable,
    CableType,
    Connection,
    Core,
    CoreStatus,
    Node,
    NodeType,
)
