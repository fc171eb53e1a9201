"""English display names for ISO 3166-1 alpha-2 country codes."""

from __future__ import annotations

COUNTRY_NAMES: dict[str, str] = {
	"AE": "United Arab Emirates",
	"AL": "Albania",
	"AR": "Argentina",
	"AT": "Austria",
	"AU": "Australia",
	"BA": "Bosnia & Herzegovina",
	"BE": "Belgium",
	"BG": "Bulgaria",
	"BR": "Brazil",
	"CA": "Canada",
	"CH": "Switzerland",
	"CL": "Chile",
	"CO": "Colombia",
	"CR": "Costa Rica",
	"CY": "Cyprus",
	"CZ": "Czechia",
	"DE": "Germany",
	"DK": "Denmark",
	"EE": "Estonia",
	"EG": "Egypt",
	"ES": "Spain",
	"FI": "Finland",
	"FR": "France",
	"GB": "United Kingdom",
	"GE": "Georgia",
	"GR": "Greece",
	"HK": "Hong Kong SAR China",
	"HR": "Croatia",
	"HU": "Hungary",
	"ID": "Indonesia",
	"IE": "Ireland",
	"IL": "Israel",
	"IN": "India",
	"IS": "Iceland",
	"IT": "Italy",
	"JP": "Japan",
	"KR": "South Korea",
	"LT": "Lithuania",
	"LU": "Luxembourg",
	"LV": "Latvia",
	"MD": "Moldova",
	"MK": "North Macedonia",
	"MX": "Mexico",
	"MY": "Malaysia",
	"NG": "Nigeria",
	"NL": "Netherlands",
	"NO": "Norway",
	"NZ": "New Zealand",
	"PE": "Peru",
	"PH": "Philippines",
	"PL": "Poland",
	"PR": "Puerto Rico",
	"PT": "Portugal",
	"RO": "Romania",
	"RS": "Serbia",
	"SE": "Sweden",
	"SG": "Singapore",
	"SI": "Slovenia",
	"SK": "Slovakia",
	"TH": "Thailand",
	"TR": "Türkiye",
	"TW": "Taiwan",
	"UA": "Ukraine",
	"UK": "United Kingdom",
	"US": "United States",
	"VN": "Vietnam",
	"ZA": "South Africa",
}


def country_name(code: str) -> str:
	"""Return the display name for `code`, or the code itself when unknown."""
	normalized = (code or "").strip().upper()
	return COUNTRY_NAMES.get(normalized, normalized)
