"""Pipeline activity functions.

Each activity performs a single unit of work:
- extract_kmz: Unwrap the KML document from a KMZ container
- parse_kml: Extract named placemarks and raw coordinates from KML text
- convert_geometry: Map coordinate text to GeoJSON and back
- reconcile_parcels: Upsert parcels from placemarks, one outcome each
- render_feed: Render parcels as a live KML document
- process_kmz: Convert a single remote KMZ to a GeoJSON geometry
"""
