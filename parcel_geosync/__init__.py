"""Parcel geometry synchronisation pipeline.

Moves parcel boundary geometry between the application's datastore and
externally hosted KML/KMZ files, and re-serves the current parcel
geometry as a live KML feed for network-linked GIS viewers.
"""

__version__ = "0.1.0"
