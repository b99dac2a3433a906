"""
Placeholder holder data for auto-generated policies.

Vehicles converted straight from the chat bot have no real policy holder yet, so the
policy is written with plausible Mexican name, RFC, phone, e-mail and address values.
"""
import random
import re
import unicodedata
from dataclasses import dataclass, asdict
from typing import Optional


FIRST_NAMES_MALE = [
    "José", "Luis", "Juan", "Miguel", "Carlos", "Francisco", "Antonio", "Alejandro",
    "Manuel", "Rafael", "Pedro", "Daniel", "Fernando", "Jorge", "Ricardo", "Eduardo",
    "Roberto", "Sergio", "Javier", "Arturo", "Raúl", "Gerardo", "Héctor", "Ramón",
]

FIRST_NAMES_FEMALE = [
    "María", "Guadalupe", "Juana", "Margarita", "Elena", "Rosa", "Verónica", "Teresa",
    "Leticia", "Carmen", "Ana", "Silvia", "Patricia", "Martha", "Gloria", "Sandra",
    "Adriana", "Beatriz", "Laura", "Claudia", "Gabriela", "Mónica", "Isabel", "Rocío",
]

SURNAMES = [
    "García", "Rodríguez", "Martínez", "Hernández", "López", "González", "Pérez",
    "Sánchez", "Ramírez", "Cruz", "Flores", "Gómez", "Díaz", "Reyes", "Morales",
    "Jiménez", "Gutiérrez", "Ruiz", "Muñoz", "Álvarez", "Castillo", "Torres",
    "Vargas", "Vázquez", "Mendoza", "Ramos", "Herrera", "Aguilar", "Ortiz", "Ríos",
]

STREETS = [
    "Av. Insurgentes", "Calle 5 de Mayo", "Av. Juárez", "Calle Hidalgo", "Av. Revolución",
    "Calle Madero", "Av. Reforma", "Calle Morelos", "Av. Universidad", "Calle Allende",
    "Av. Constitución", "Calle Zaragoza", "Av. Independencia", "Av. Patria",
]

NEIGHBORHOODS = [
    "Centro", "Roma Norte", "Condesa", "Polanco", "Santa Fe", "Del Valle", "Narvarte",
    "Doctores", "Obrera", "Juárez", "Cuauhtémoc", "Anzures", "San Rafael", "Buenavista",
]

MUNICIPALITIES = [
    "Guadalajara", "Zapopan", "Tlaquepaque", "Tonalá", "Tlajomulco", "El Salto",
    "Chapala", "Tequila", "Magdalena", "Etzatlán", "San Marcos", "Jala",
]

STATES = [
    "Jalisco", "México", "Ciudad de México", "Nuevo León", "Puebla", "Veracruz",
    "Michoacán", "Oaxaca", "Guerrero", "Tamaulipas", "Baja California", "Sinaloa",
    "Sonora", "Coahuila", "Durango", "San Luis Potosí", "Zacatecas", "Hidalgo",
]

AREA_CODES = ["33", "55", "81", "222", "656", "667", "668", "669", "686", "687"]
EMAIL_DOMAINS = ["gmail.com", "hotmail.com", "yahoo.com.mx", "outlook.com", "live.com.mx"]

LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS = "0123456789"


@dataclass
class HolderData:
    """Holder and address block written on a vehicle and its generated policy."""
    holder_name: str
    holder_rfc: str
    holder_phone: str
    holder_email: str
    street: str
    neighborhood: str
    municipality: str
    region: str
    postal_code: str

    def to_dict(self) -> dict:
        return asdict(self)


def _ascii_slug(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(c for c in normalized if not unicodedata.combining(c))
    return re.sub(r"[^a-z0-9]", "", stripped)


class PlaceholderDataGenerator:
    """Generates random holder data. Pass a seeded Random for reproducible output."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def name(self) -> str:
        pool = FIRST_NAMES_MALE if self._rng.random() < 0.5 else FIRST_NAMES_FEMALE
        first = self._rng.choice(pool)
        return f"{first} {self._rng.choice(SURNAMES)} {self._rng.choice(SURNAMES)}"

    def rfc(self) -> str:
        """4 letters, 6 digits (birth date position), 3 alphanumerics."""
        letters = "".join(self._rng.choice(LETTERS) for _ in range(4))
        digits = "".join(self._rng.choice(DIGITS) for _ in range(6))
        suffix = "".join(self._rng.choice(LETTERS + DIGITS) for _ in range(3))
        return f"{letters}{digits}{suffix}"

    def phone(self) -> str:
        return f"{self._rng.choice(AREA_CODES)}{self._rng.randint(1000000, 9999999)}"

    def email(self, name: str) -> str:
        return f"{_ascii_slug(name)}{self._rng.randint(1, 999)}@{self._rng.choice(EMAIL_DOMAINS)}"

    def generate(self) -> HolderData:
        holder_name = self.name()
        return HolderData(
            holder_name=holder_name,
            holder_rfc=self.rfc(),
            holder_phone=self.phone(),
            holder_email=self.email(holder_name),
            street=f"{self._rng.choice(STREETS)} {self._rng.randint(1, 999)}",
            neighborhood=self._rng.choice(NEIGHBORHOODS),
            municipality=self._rng.choice(MUNICIPALITIES),
            region=self._rng.choice(STATES),
            postal_code=str(self._rng.randint(10000, 99999)),
        )
