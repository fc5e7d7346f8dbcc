"""Montevideo bus lines grouped by neighbourhood bounding box (STM routes)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class TransitLine:
    number: str
    name: str
    company: str


@dataclass(frozen=True)
class TransitZone:
    name: str
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float
    lines: Tuple[TransitLine, ...]

    def contains(self, lat: float, lng: float) -> bool:
        return self.lat_min <= lat <= self.lat_max and self.lng_min <= lng <= self.lng_max

    @property
    def centroid(self) -> Tuple[float, float]:
        return (self.lat_min + self.lat_max) / 2, (self.lng_min + self.lng_max) / 2


def _lines(*rows: Tuple[str, str, str]) -> Tuple[TransitLine, ...]:
    return tuple(TransitLine(number, name, company) for number, name, company in rows)


MONTEVIDEO_ZONES: Tuple[TransitZone, ...] = (
    TransitZone(
        "Ciudad Vieja", -34.915, -34.900, -56.220, -56.195,
        _lines(
            ("21", "Aduana - Cerro", "CUTCSA"),
            ("64", "Ciudad Vieja - Paso de la Arena", "CUTCSA"),
            ("124", "Ciudad Vieja - Portones", "CUTCSA"),
            ("130", "Aduana - Colón", "CUTCSA"),
            ("141", "Aduana - Pocitos", "CUTCSA"),
            ("142", "Aduana - Buceo", "CUTCSA"),
            ("148", "Ciudad Vieja - Tres Cruces", "CUTCSA"),
            ("187", "Aduana - Manga", "CUTCSA"),
            ("188", "Aduana - Maroñas", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Centro", -34.912, -34.898, -56.198, -56.175,
        _lines(
            ("103", "18 de Julio - Malvín", "CUTCSA"),
            ("104", "18 de Julio - Carrasco", "CUTCSA"),
            ("109", "Centro - Portones", "CUTCSA"),
            ("110", "Centro - Tres Cruces", "CUTCSA"),
            ("117", "Centro - Punta Carretas", "CUTCSA"),
            ("121", "Centro - Pocitos", "CUTCSA"),
            ("145", "Centro - Cordón", "CUTCSA"),
            ("156", "Centro - Parque Batlle", "CUTCSA"),
            ("158", "Centro - La Comercial", "CUTCSA"),
            ("169", "Centro - Aguada", "CUTCSA"),
            ("174", "Centro - Buceo", "CUTCSA"),
            ("183", "Centro - Pocitos", "CUTCSA"),
            ("199", "Centro - Tres Cruces", "UCOT"),
        ),
    ),
    TransitZone(
        "Cordón", -34.910, -34.897, -56.185, -56.168,
        _lines(
            ("109", "Cordón - Goes", "CUTCSA"),
            ("110", "Cordón - Tres Cruces", "CUTCSA"),
            ("117", "Cordón - Punta Carretas", "CUTCSA"),
            ("121", "Cordón - Pocitos", "CUTCSA"),
            ("145", "Cordón - Parque Rodó", "CUTCSA"),
            ("181", "Cordón - La Blanqueada", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Pocitos", -34.930, -34.910, -56.165, -56.140,
        _lines(
            ("104", "Pocitos - Ciudad Vieja", "CUTCSA"),
            ("117", "Pocitos - Centro", "CUTCSA"),
            ("121", "Pocitos - Centro", "CUTCSA"),
            ("141", "Pocitos - Aduana", "CUTCSA"),
            ("142", "Pocitos - Aduana", "CUTCSA"),
            ("174", "Pocitos - Centro", "CUTCSA"),
            ("183", "Pocitos - Centro", "CUTCSA"),
            ("300", "Pocitos - Tres Cruces", "COETC"),
        ),
    ),
    TransitZone(
        "Buceo", -34.920, -34.905, -56.145, -56.125,
        _lines(
            ("104", "Buceo - Centro", "CUTCSA"),
            ("109", "Buceo - Centro", "CUTCSA"),
            ("117", "Buceo - Punta Carretas", "CUTCSA"),
            ("121", "Buceo - Centro", "CUTCSA"),
            ("142", "Buceo - Ciudad Vieja", "CUTCSA"),
            ("174", "Buceo - Centro", "CUTCSA"),
            ("D1", "Diferencial Buceo", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Punta Carretas", -34.935, -34.920, -56.170, -56.150,
        _lines(
            ("104", "Punta Carretas - Centro", "CUTCSA"),
            ("117", "Punta Carretas - Centro", "CUTCSA"),
            ("121", "Punta Carretas - Centro", "CUTCSA"),
            ("142", "Punta Carretas - Ciudad Vieja", "CUTCSA"),
            ("174", "Punta Carretas - Centro", "CUTCSA"),
            ("116", "Punta Carretas - Parque Rodó", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Parque Rodó", -34.925, -34.912, -56.175, -56.155,
        _lines(
            ("60", "Parque Rodó - Paso Molino", "CUTCSA"),
            ("62", "Parque Rodó - La Teja", "CUTCSA"),
            ("64", "Parque Rodó - Paso de la Arena", "CUTCSA"),
            ("104", "Parque Rodó - Carrasco", "CUTCSA"),
            ("117", "Parque Rodó - Centro", "CUTCSA"),
            ("116", "Parque Rodó - Punta Carretas", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Tres Cruces", -34.900, -34.888, -56.180, -56.160,
        _lines(
            ("104", "Tres Cruces - Centro", "CUTCSA"),
            ("109", "Tres Cruces - Centro", "CUTCSA"),
            ("110", "Tres Cruces - Centro", "CUTCSA"),
            ("121", "Tres Cruces - Pocitos", "CUTCSA"),
            ("148", "Tres Cruces - Ciudad Vieja", "CUTCSA"),
            ("174", "Tres Cruces - Buceo", "CUTCSA"),
            ("199", "Tres Cruces - Centro", "UCOT"),
            ("L1", "Línea 1 Interdepartamental", "COT"),
            ("L3", "Línea 3 Interdepartamental", "COPSA"),
        ),
    ),
    TransitZone(
        "Parque Batlle", -34.900, -34.885, -56.168, -56.148,
        _lines(
            ("103", "Parque Batlle - Centro", "CUTCSA"),
            ("109", "Parque Batlle - Centro", "CUTCSA"),
            ("121", "Parque Batlle - Pocitos", "CUTCSA"),
            ("142", "Parque Batlle - Ciudad Vieja", "CUTCSA"),
            ("156", "Parque Batlle - Centro", "CUTCSA"),
            ("181", "Parque Batlle - Cordón", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Carrasco", -34.900, -34.878, -56.080, -56.050,
        _lines(
            ("104", "Carrasco - Centro", "CUTCSA"),
            ("109", "Carrasco - Centro", "CUTCSA"),
            ("117", "Carrasco - Pocitos", "CUTCSA"),
            ("710", "Carrasco - Aeropuerto", "CUTCSA"),
            ("CA1", "COA Carrasco", "CUTCSA"),
            ("D10", "Diferencial Carrasco", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Malvín", -34.915, -34.900, -56.120, -56.095,
        _lines(
            ("103", "Malvín - Centro", "CUTCSA"),
            ("104", "Malvín - Centro", "CUTCSA"),
            ("109", "Malvín - Centro", "CUTCSA"),
            ("117", "Malvín - Pocitos", "CUTCSA"),
            ("121", "Malvín - Centro", "CUTCSA"),
        ),
    ),
    TransitZone(
        "La Blanqueada", -34.898, -34.885, -56.165, -56.148,
        _lines(
            ("109", "La Blanqueada - Centro", "CUTCSA"),
            ("121", "La Blanqueada - Pocitos", "CUTCSA"),
            ("156", "La Blanqueada - Centro", "CUTCSA"),
            ("181", "La Blanqueada - Cordón", "CUTCSA"),
            ("195", "La Blanqueada - Paso Molino", "CUTCSA"),
        ),
    ),
    TransitZone(
        "Canelones / Interior", -34.600, -34.500, -56.350, -56.200,
        _lines(
            ("COT", "Interdepartamental a Canelones", "COT"),
            ("COPSA", "Interdepartamental a Canelones", "COPSA"),
            ("L60", "Línea 60 - Ruta del Vino", "COPSA"),
        ),
    ),
)
