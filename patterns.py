"""Multilingual trigger phrase tables for wallet voice commands.

Phrases are matched as substrings against the lower-cased transcript padded
with one space on each side, so a phrase with a leading space only matches
at the start of a word (" connect" hits "connect wallet" but not
"disconnect").  Within a list, longer and more specific phrases come first.
Across intents, no phrase may contain a phrase of an intent that is checked
earlier, otherwise it could never win.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from models import CommandType

DEFAULT_LANGUAGE_TAG = "en-US"
FALLBACK_LANGUAGE = "en"

SUPPORTED_LANGUAGES = {
    "en-US": "English (US)",
    "en-IN": "English (India)",
    "hi-IN": "हिंदी (Hindi)",
    "es-ES": "Español (Spanish)",
    "de-DE": "Deutsch (German)",
    "pt-BR": "Português (Portuguese)",
    "fr-FR": "Français (French)",
    "it-IT": "Italiano (Italian)",
    "ja-JP": "日本語 (Japanese)",
    "ko-KR": "한국어 (Korean)",
    "zh-CN": "中文 (Chinese)",
    "ru-RU": "Русский (Russian)",
}

INTENT_PRIORITY = (
    CommandType.CONNECT,
    CommandType.DISCONNECT,
    CommandType.BALANCE,
    CommandType.ACCOUNT,
    CommandType.SEND,
)

# Currency words that may directly follow an amount.
AMOUNT_UNITS = ("ether", "eth", "ईटीएच", "イーサ", "이더", "以太坊", "以太", "эфир")

# Words that may sit between an amount or a send verb and the recipient.
RECIPIENT_PREFIXES = ("to", "para", "an", "à", "a", "на", "给", "에게", "に")

DEFAULT_PHRASES: Dict[CommandType, Dict[str, Tuple[str, ...]]] = {
    CommandType.CONNECT: {
        "en": (" connect my wallet", " connect wallet", "wallet connect", " link wallet", " connect"),
        "hi": ("वॉलेट कनेक्ट", " कनेक्ट करो", " कनेक्ट"),
        "es": (" conectar billetera", " conectar cartera", " conectar"),
        "de": ("wallet verbinden", "geldbörse verbinden", "verbinden"),
        "pt": (" conectar carteira", " ligar carteira", " conectar"),
        "fr": (" connecter le portefeuille", " connecter portefeuille", " lier portefeuille", " connecter"),
        "it": (" connetti portafoglio", " collegare portafoglio", " collega portafoglio", " connetti"),
        "ja": ("ウォレット接続", "接続", "つなぐ"),
        "ko": ("지갑 연결", "지갑연결", "연결하기", "연결해"),
        "zh": ("连接钱包", "链接钱包", "连上钱包"),
        "ru": ("подключить кошелек", "подключить кошелёк", "связать кошелек", "подключить"),
    },
    CommandType.DISCONNECT: {
        "en": ("disconnect my wallet", "disconnect wallet", "wallet disconnect", "disconnect", "unlink wallet", "log out", "logout"),
        "hi": ("वॉलेट डिस्कनेक्ट", "डिस्कनेक्ट करो", "डिस्कनेक्ट", "लॉग आउट"),
        "es": ("desconectar billetera", "desconectar cartera", "desconectar", "cerrar sesión"),
        "de": ("wallet trennen", "verbindung trennen", "trennen", "abmelden"),
        "pt": ("desconectar carteira", "desligar carteira", "desconectar", "encerrar sessão"),
        "fr": ("déconnecter portefeuille", "se déconnecter", "déconnecter", "déconnexion"),
        "it": ("disconnetti portafoglio", "scollega portafoglio", "esci dal portafoglio", "disconnetti"),
        "ja": ("ウォレット切断", "切断", "ログアウト"),
        "ko": ("연결 해제", "연결 끊기", "지갑 해제", "로그아웃"),
        "zh": ("断开连接", "断开钱包", "退出登录", "断开"),
        "ru": ("отключить кошелек", "отключить кошелёк", "отключить", "выйти"),
    },
    CommandType.BALANCE: {
        "en": ("check my balance", "check balance", "show balance", "my balance", "balance"),
        "hi": ("बैलेंस चेक", "मेरा बैलेंस", "बैलेंस दिखाओ", "बैलेंस"),
        "es": ("verificar saldo", "mostrar saldo", "mi saldo", "saldo"),
        "de": ("saldo prüfen", "guthaben anzeigen", "mein guthaben", "kontostand", "guthaben"),
        "pt": ("verificar saldo", "mostrar saldo", "meu saldo", "saldo"),
        "fr": ("vérifier solde", "afficher solde", "mon solde", "solde"),
        "it": ("controlla saldo", "mostra saldo", "il mio saldo", "saldo"),
        "ja": ("残高確認", "残高表示", "私の残高", "残高"),
        "ko": ("잔액 확인", "잔액 보기", "내 잔액", "잔액"),
        "zh": ("检查余额", "显示余额", "我的余额", "余额"),
        "ru": ("проверить баланс", "показать баланс", "мой баланс", "баланс"),
    },
    CommandType.ACCOUNT: {
        "en": ("show my account", "show account", "my account", "wallet address", "show address", "my address", "account"),
        "hi": ("मेरा अकाउंट", "अकाउंट दिखाओ", "वॉलेट एड्रेस", "मेरा पता", "अकाउंट"),
        "es": ("mostrar mi cuenta", "mi cuenta", "dirección de billetera", "mi dirección", "cuenta"),
        "de": ("mein konto", "konto anzeigen", "wallet adresse", "meine adresse", "konto"),
        "pt": ("minha conta", "mostrar conta", "endereço da carteira", "meu endereço", "conta"),
        "fr": ("mon compte", "afficher compte", "adresse du portefeuille", "mon adresse", "compte"),
        "it": ("il mio account", "mostra account", "indirizzo del portafoglio", "il mio indirizzo", "account"),
        "ja": ("私のアカウント", "ウォレットアドレス", "アカウント", "アドレス"),
        "ko": ("내 계정", "지갑 주소", "내 주소", "계정"),
        "zh": ("我的账户", "钱包地址", "我的地址", "账户"),
        "ru": ("мой аккаунт", "адрес кошелька", "мой адрес", "аккаунт"),
    },
    CommandType.SEND: {
        "en": ("send eth", "send", "transfer", "payment", "pay"),
        "hi": ("ईटीएच भेजो", "भेजो", "ट्रांसफर", "पेमेंट"),
        "es": ("enviar eth", "enviar", "transferir", "pagar"),
        "de": ("eth senden", "senden", "überweisen", "bezahlen"),
        "pt": ("enviar eth", "enviar", "transferir", "pagar"),
        "fr": ("envoyer eth", "envoyer", "transférer", "payer"),
        "it": ("invia eth", "invia", "trasferisci", "paga"),
        "ja": ("eth送信", "送信", "転送", "支払い"),
        "ko": ("eth 보내기", "보내기", "전송", "지불"),
        "zh": ("发送eth", "发送", "转账", "支付"),
        "ru": ("отправить eth", "отправить", "перевести", "заплатить"),
    },
}


def base_language(language_tag: str) -> str:
    """Return the primary language subtag of a tag such as ``en-US`` or ``pt_BR``."""
    tag = (language_tag or "").strip().replace("_", "-")
    return tag.split("-", 1)[0].lower()


class PatternTable:
    """Read-only ``(intent, language) -> phrases`` lookup with English fallback."""

    def __init__(
        self,
        phrases: Mapping[CommandType, Mapping[str, Sequence[str]]],
        fallback_language: str = FALLBACK_LANGUAGE,
    ) -> None:
        frozen = {}
        for intent, by_language in phrases.items():
            frozen[CommandType(intent)] = MappingProxyType(
                {code.lower(): tuple(items) for code, items in by_language.items()}
            )
        if not any(fallback_language in table for table in frozen.values()):
            raise ValueError(f"fallback language {fallback_language!r} has no phrases")
        self._phrases = MappingProxyType(frozen)
        self._fallback = fallback_language

    @property
    def fallback_language(self) -> str:
        return self._fallback

    @property
    def languages(self) -> Tuple[str, ...]:
        codes = set()
        for by_language in self._phrases.values():
            codes.update(by_language)
        return tuple(sorted(codes))

    def resolve_language(self, language_tag: str) -> str:
        code = base_language(language_tag)
        if code in self.languages:
            return code
        return self._fallback

    def phrases_for(self, intent: CommandType, language_code: str) -> Tuple[str, ...]:
        by_language = self._phrases.get(intent)
        if not by_language:
            return ()
        if language_code in by_language:
            return by_language[language_code]
        return by_language.get(self._fallback, ())

    def entries(self) -> Iterable[Tuple[CommandType, str, str]]:
        """Yield every ``(intent, language, phrase)`` triple in table order."""
        for intent, by_language in self._phrases.items():
            for code, items in by_language.items():
                for phrase in items:
                    yield intent, code, phrase


DEFAULT_PATTERN_TABLE = PatternTable(DEFAULT_PHRASES)
