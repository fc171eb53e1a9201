"""Catalog domain exports."""

from .indexing import build_index
from .models import CatalogSnapshot, City, Country, LocationIndex, Partner, PartnerType, Server
from .partnerships import PartnershipsRepository, snapshot_from_types

__all__ = [
	"build_index",
	"CatalogSnapshot",
	"City",
	"Country",
	"LocationIndex",
	"Partner",
	"PartnerType",
	"PartnershipsRepository",
	"Server",
	"snapshot_from_types",
]
