"""Fixed-point unit conversion helpers.

Market parameters are written in human units (``"0.02"``, ``10_000``)
and converted to integer mantissas before they are passed to the contracts.
All conversions round toward zero.
"""

from decimal import ROUND_DOWN, Decimal, localcontext

#: Ethereum 0x0000000000000000000000000000000000000000 address
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

#: Placeholder address used as the first entry of the LeToken risk fund/treasury pair
ADDRESS_ONE = "0x0000000000000000000000000000000000000001"


def _to_decimal(amount: str | int | Decimal) -> Decimal:
    assert type(amount) in (str, int, Decimal), f"Unsupported amount type {type(amount)}: {amount}"
    return Decimal(amount)


def convert_to_unit(amount: str | int | Decimal, decimals: int) -> int:
    """Scale a human readable amount to raw integer units.

    Example:

    .. code-block:: python

        assert convert_to_unit("0.02", 18) == 20_000_000_000_000_000
        assert convert_to_unit(10_000, 6) == 10_000_000_000

    :param amount:
        Amount in human units

    :param decimals:
        How many decimals the target unit has

    :return:
        Raw amount, fractions below one raw unit are truncated
    """
    assert type(decimals) == int and decimals >= 0, f"Bad decimals: {decimals}"
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = _to_decimal(amount) * (Decimal(10) ** decimals)
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def scale_down_by(amount: str | int | Decimal, decimals: int) -> Decimal:
    """Scale a raw integer amount back to human units, rounding toward zero."""
    assert type(decimals) == int and decimals >= 0, f"Bad decimals: {decimals}"
    with localcontext() as ctx:
        ctx.prec = 100
        ctx.rounding = ROUND_DOWN
        return _to_decimal(amount) / (Decimal(10) ** decimals)
