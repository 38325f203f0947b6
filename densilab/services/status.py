from enum import Enum


class Status(str, Enum):
    AGUARDANDO = "AGUARDANDO"
    APROVADO = "APROVADO"
    REPROVADO = "REPROVADO"

    @classmethod
    def parse(cls, value):
        """Strict parse of a persisted verdict; unknown strings are an error."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unrecognized test status: {value!r}") from None
