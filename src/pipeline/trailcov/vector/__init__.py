"""Vector inputs: trail segments and the area of interest."""
