"""
QR payload codec
Encodes the full card context into a compact short-key JSON string and reads
it back, tolerating the legacy long-key format and bare card numbers.

Compact keys:
- i / c / g: card id / card number / guest display name
- e / m / r / t: expiry date / meal-window count / restaurant display name / generation time
- mt: meal windows as {i, n, s, e}
- gn, jt, co, na, rm: guest name / job title / company / nationality / room
- rn, rl: restaurant name / location
- mu, uc: max usage / usage count
- vf, vt: valid-from / valid-to

decode() never raises: unreadable input yields None and the caller falls back
to treating the raw string as a card number.

card_type and guest_id are not part of the compact schema; only legacy
payloads carry them. Compact payloads decode with the defaults (QR, None).
"""

import io
import json
import logging
import random
import time
from datetime import datetime
from typing import Any, Dict, Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from ..config.settings import settings
from ..models.guest import CardType
from ..models.payload import CardContext, MealWindowPayload, PayloadFormat

logger = logging.getLogger(__name__)

GUEST_PLACEHOLDER = "GUEST"
RESTAURANT_PLACEHOLDER = "REST"


def _format_datetime(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _parse_datetime(value: Any) -> Optional[datetime]:
    """ISO 8601 string to datetime, None for blanks and garbage"""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Ignoring unparsable payload date %r", value)
        return None


class QrCodec:
    """Card payload codec"""

    def encode(self, context: CardContext) -> str:
        """
        Serialize a card context with compact keys

        Args:
            context: card context; card_id and card_number are required

        Returns:
            str: JSON payload for the QR code
        """
        if not context.card_id or not context.card_number:
            raise ValueError("card_id and card_number are required to encode a card")
        if any(not w.id for w in context.meal_windows):
            raise ValueError("meal windows need an id to be encoded")

        data = {
            "i": context.card_id,
            "c": context.card_number,
            "g": context.guest_name or GUEST_PLACEHOLDER,
            "e": context.valid_to.date().isoformat() if context.valid_to else "",
            "m": len(context.meal_windows),
            "r": context.restaurant_name or RESTAURANT_PLACEHOLDER,
            "t": context.generated_at,
            "mt": [
                {"i": w.id, "n": w.name, "s": w.start_time, "e": w.end_time}
                for w in context.meal_windows
            ],
            "gn": context.guest_name,
            "jt": context.job_title,
            "co": context.company,
            "na": context.nationality,
            "rm": context.room_number,
            "rn": context.restaurant_name,
            "rl": context.restaurant_location,
            "mu": context.max_usage,
            "uc": context.usage_count,
            "vf": _format_datetime(context.valid_from),
            "vt": _format_datetime(context.valid_to),
        }
        # non-ASCII names stay as UTF-8, \u escapes would inflate the QR
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))

    def decode(self, text: Optional[str]) -> Optional[CardContext]:
        """
        Read a scanned payload

        Tries the compact schema, then the legacy schema, then a bare card
        number. Returns None for anything else.
        """
        if not isinstance(text, str):
            return None
        text = text.strip()
        if not text:
            return None

        try:
            parsed = json.loads(text)
        except (ValueError, RecursionError):
            if text[0] in "{[":
                logger.debug("Malformed JSON card payload")
                return None
            return self._decode_bare(text)

        if isinstance(parsed, dict):
            try:
                if parsed.get("i") and parsed.get("g") and parsed.get("c"):
                    return self._decode_compact(parsed)
                if parsed.get("id") or parsed.get("guestId") or parsed.get("cardNumber"):
                    return self._decode_legacy(parsed)
            except (ValueError, TypeError, AttributeError) as e:
                logger.debug("Unreadable card payload: %s", e)
                return None
            logger.debug("Unrecognized card payload keys: %s", sorted(parsed))
            return None

        if isinstance(parsed, list):
            return None

        # JSON scalars: numeric RFID numbers and the like
        return self._decode_bare(text)

    def _decode_compact(self, data: Dict[str, Any]) -> CardContext:
        windows = [
            MealWindowPayload(id=str(w["i"]), name=w.get("n"),
                              start_time=w.get("s"), end_time=w.get("e"))
            for w in data.get("mt") or []
            if isinstance(w, dict) and w.get("i")
        ]
        guest_name = data["gn"] if "gn" in data else data["g"]
        restaurant_name = data["rn"] if "rn" in data else data.get("r", "")
        return CardContext(
            card_id=str(data["i"]),
            card_number=str(data["c"]),
            guest_name=guest_name or "",
            job_title=data.get("jt") or "",
            company=data.get("co") or "",
            nationality=data.get("na") or "",
            room_number=data.get("rm") or "",
            restaurant_name=restaurant_name or "",
            restaurant_location=data.get("rl") or "",
            meal_windows=windows,
            valid_from=_parse_datetime(data.get("vf")),
            valid_to=_parse_datetime(data.get("vt")) or _parse_datetime(data.get("e")),
            max_usage=data.get("mu"),
            usage_count=data.get("uc") or 0,
            generated_at=data.get("t") or 0,
            format=PayloadFormat.COMPACT,
        )

    def _decode_legacy(self, data: Dict[str, Any]) -> CardContext:
        try:
            card_type = CardType(data.get("type") or CardType.QR.value)
        except ValueError:
            card_type = CardType.QR
        return CardContext(
            card_id=str(data.get("id") or ""),
            card_number=str(data.get("cardNumber") or ""),
            card_type=card_type,
            guest_id=str(data["guestId"]) if data.get("guestId") else None,
            meal_windows=[MealWindowPayload(id=str(m)) for m in data.get("meals") or [] if m],
            valid_to=_parse_datetime(data.get("expiry")),
            generated_at=0,
            format=PayloadFormat.LEGACY,
        )

    def _decode_bare(self, text: str) -> CardContext:
        return CardContext(card_number=text, generated_at=0, format=PayloadFormat.BARE)

    def generate_card_number(self, card_type: CardType) -> str:
        """Prefix + last 8 digits of the millisecond clock + 2 random digits"""
        prefix = "QR" if card_type == CardType.QR else "RF"
        stamp = str(int(time.time() * 1000))[-8:]
        return f"{prefix}{stamp}{random.randint(0, 99):02d}"

    def render_png(self, payload: str, box_size: int = None, border: int = None) -> bytes:
        """Render a payload as a printable QR PNG"""
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_M,
            box_size=box_size or settings.qr_box_size,
            border=border if border is not None else settings.qr_border,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()


qr_codec = QrCodec()
