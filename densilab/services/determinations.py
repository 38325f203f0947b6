"""
Raw measurement records entered on the test forms.

Units are fixed by the lab instrumentation: masses in grams, volumes in cm^3,
temperatures in degrees Celsius.
"""
from dataclasses import dataclass

from densilab.services.validators import non_negative, safe_div, to_number


@dataclass(frozen=True)
class MoistureDetermination:
    capsule_code: str = ""
    wet_plus_tare: float = 0.0
    dry_plus_tare: float = 0.0
    tare: float = 0.0

    @classmethod
    def from_payload(cls, raw):
        raw = raw or {}
        return cls(
            capsule_code=str(raw.get("capsule_code") or raw.get("capsule") or ""),
            wet_plus_tare=to_number(raw.get("wet_plus_tare", raw.get("wetTare"))),
            dry_plus_tare=to_number(raw.get("dry_plus_tare", raw.get("dryTare"))),
            tare=to_number(raw.get("tare")),
        )

    @property
    def dry_soil(self):
        return non_negative(self.dry_plus_tare - self.tare)

    @property
    def water(self):
        return non_negative(self.wet_plus_tare - self.dry_plus_tare)


@dataclass(frozen=True)
class CylinderDetermination:
    cylinder_code: str = ""
    mold_plus_soil: float = 0.0
    mold: float = 0.0
    volume: float = 0.0

    @classmethod
    def from_payload(cls, raw):
        raw = raw or {}
        return cls(
            cylinder_code=str(raw.get("cylinder_code") or raw.get("cylinderNumber") or ""),
            mold_plus_soil=to_number(raw.get("mold_plus_soil", raw.get("moldeSolo"))),
            mold=to_number(raw.get("mold", raw.get("molde"))),
            volume=to_number(raw.get("volume")),
        )

    @property
    def soil_mass(self):
        return non_negative(self.mold_plus_soil - self.mold)

    @property
    def wet_unit_weight(self):
        if self.volume <= 0:
            return 0.0
        return safe_div(self.soil_mass, self.volume)


@dataclass(frozen=True)
class PicnometerDetermination:
    flask_mass: float = 0.0
    flask_sample_water_mass: float = 0.0
    flask_water_mass: float = 0.0
    temperature: float = 0.0
    wet_soil_mass: float = 0.0

    @classmethod
    def from_payload(cls, raw):
        raw = raw or {}
        return cls(
            flask_mass=to_number(raw.get("flask_mass", raw.get("massaPicnometro"))),
            flask_sample_water_mass=to_number(
                raw.get("flask_sample_water_mass", raw.get("massaPicAmostraAgua"))
            ),
            flask_water_mass=to_number(raw.get("flask_water_mass", raw.get("massaPicAgua"))),
            temperature=to_number(raw.get("temperature", raw.get("temperatura"))),
            wet_soil_mass=to_number(raw.get("wet_soil_mass", raw.get("massaSoloUmido"))),
        )
