from enum import Enum
from typing import Optional
from pydantic import BaseModel

# Nombre que reemplaza al usuario en modo anónimo
ANONYMOUS_NAME = "Anonymous"


class DisplayMode(str, Enum):
    NORMAL = "normal"
    ANONYMOUS = "anonymous"


class PrivacySetting(BaseModel):
    """Preferencias de privacidad de leaderboards (colección `user_settings`)"""

    user_id: str
    opt_out: bool = False
    display_mode: DisplayMode = DisplayMode.NORMAL

    @property
    def is_anonymous(self) -> bool:
        return self.display_mode == DisplayMode.ANONYMOUS

    @classmethod
    def from_document(cls, user_id: str, doc: Optional[dict]) -> "PrivacySetting":
        """
        Construye la configuración desde el documento guardado.

        Documento ausente o campos raros = valores por defecto {false, normal}.
        """
        if not doc:
            return cls(user_id=user_id)

        opt_out = doc.get("regional_opt_out")
        raw_mode = doc.get("regional_display_mode")
        try:
            display_mode = DisplayMode(raw_mode)
        except ValueError:
            display_mode = DisplayMode.NORMAL

        return cls(
            user_id=user_id,
            opt_out=opt_out if isinstance(opt_out, bool) else False,
            display_mode=display_mode,
        )


class PrivacyUpdate(BaseModel):
    opt_out: Optional[bool] = None
    display_mode: Optional[DisplayMode] = None
