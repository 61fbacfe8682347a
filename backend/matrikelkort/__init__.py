"""Danish cadastral parcel (matrikel) overlays resolved through Dataforsyningen gsearch."""
