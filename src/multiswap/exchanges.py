"""Display metadata for exchanges that appear on quotes."""

from dataclasses import replace

from multiswap.providers.base import ExchangeInfo

EXCHANGE_INFO: dict[str, ExchangeInfo] = {
    "default": ExchangeInfo(name="", logo="", website=""),
    "ONE_INCH": ExchangeInfo(
        name="1inch",
        logo="https://img.mewapi.io/?image=https://1inch.io/img/favicon/apple-touch-icon.png",
        website="https://1inch.io",
    ),
    "ZERO_X": ExchangeInfo(
        name="0x",
        logo="https://img.mewapi.io/?image=https://0x.org/favicon.ico",
        website="https://0x.org",
    ),
    "PARASWAP": ExchangeInfo(
        name="ParaSwap",
        logo="https://img.mewapi.io/?image=https://www.paraswap.io/favicon.ico",
        website="https://www.paraswap.io",
    ),
    "CHANGELLY": ExchangeInfo(
        name="Changelly",
        logo="https://img.mewapi.io/?image=https://changelly.com/favicon.ico",
        website="https://changelly.com",
    ),
}


def get_exchange_info(exchange: str) -> ExchangeInfo:
    """Look up display metadata for an exchange id.

    Unknown exchanges get a copy of the default entry named after the raw
    id.
    """
    info = EXCHANGE_INFO.get(exchange)
    if info is not None and exchange != "default":
        return info
    return replace(EXCHANGE_INFO["default"], name=exchange)
