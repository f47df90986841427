"""
税额计算引擎

纯函数，不依赖数据库：
- 行金额 = 单价 × 数量 − 折扣
- 不含税（EXCLUSIVE）：税额 = 金额 × 税率 / 100，合计 = 金额 + 税额
- 含税（INCLUSIVE）：不含税金额 = 金额 × 100 / (100 + 税率)，税额 = 金额 − 不含税金额

单价、折扣最多两位小数，行金额因此精确到分；税额按整单小计计算一次，
只在输出时按四舍五入保留两位小数，不逐行舍入税额。
"""

import enum
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Union

from app.core.exceptions import ValidationError

Number = Union[int, float, str, Decimal]

ZERO = Decimal("0")
ONE_HUNDRED = Decimal("100")
CENT = Decimal("0.01")


class TaxMode(str, enum.Enum):
    EXCLUSIVE = "EXCLUSIVE"
    INCLUSIVE = "INCLUSIVE"


@dataclass(frozen=True)
class TaxComputation:
    """税额计算结果（已舍入到分）"""
    taxable_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    tax_rate_percent: Decimal


@dataclass(frozen=True)
class LineInput:
    unit_price: Number
    quantity: int
    discount: Number = 0


@dataclass(frozen=True)
class OrderTotals:
    """整单金额：line_totals 为精确值，其余已舍入到分"""
    line_totals: List[Decimal]
    subtotal: Decimal
    tax: Decimal
    total_amount: Decimal
    tax_rate_percent: Decimal


def to_decimal(value: Optional[Number]) -> Decimal:
    """转换为 Decimal；浮点数先转字符串，避免二进制误差"""
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError(f"无效的数值: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"无效的数值: {value!r}")
    return result


def to_money(value: Decimal) -> Decimal:
    """输出边界：四舍五入到分"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_tax_rate(tax_rate_percent: Number) -> Decimal:
    """税率必须在 [0, 100] 之间"""
    rate = to_decimal(tax_rate_percent)
    if rate < ZERO or rate > ONE_HUNDRED:
        raise ValidationError("税率必须在 0 到 100 之间", {"taxRatePercent": str(tax_rate_percent)})
    return rate


def calculate_line_total(unit_price: Number, quantity: Number, discount: Optional[Number] = 0) -> Decimal:
    """
    计算行金额（不舍入）

    单价和折扣最多两位小数、数量为整数，所以行金额本身就精确到分，
    各行金额之和与舍入后的小计一致。
    """
    price = to_decimal(unit_price)
    qty = to_decimal(quantity)
    disc = to_decimal(discount)

    if price < ZERO or qty <= ZERO or disc < ZERO:
        raise ValidationError(
            "明细数值不合法：数量必须大于0，单价和折扣不能为负",
            {"unitPrice": str(price), "quantity": str(qty), "discount": str(disc)},
        )
    if qty != qty.to_integral_value():
        raise ValidationError("数量必须为整数", {"quantity": str(qty)})
    for field_name, value in (("unitPrice", price), ("discount", disc)):
        if value != value.quantize(CENT):
            raise ValidationError(f"{field_name} 最多两位小数", {field_name: str(value)})

    line_subtotal = price * qty
    if disc > line_subtotal:
        raise ValidationError(
            "折扣不能超过行小计",
            {"lineSubtotal": str(line_subtotal), "discount": str(disc)},
        )

    return line_subtotal - disc


def compute_tax_totals(
    amount: Number,
    tax_rate_percent: Number,
    mode: TaxMode = TaxMode.EXCLUSIVE) -> TaxComputation:
    """
    按计税方式计算税额

    舍入后由已舍入的部分推导派生值（不含税合计 = 金额 + 税额；含税税额 = 合计 − 不含税金额），
    保证输出的三个金额始终严格相加一致。
    """
    value = to_decimal(amount)
    rate = validate_tax_rate(tax_rate_percent)
    mode = TaxMode(mode)

    if value < ZERO:
        raise ValidationError("计税金额不能为负", {"amount": str(value)})

    if mode is TaxMode.INCLUSIVE:
        taxable = value * ONE_HUNDRED / (ONE_HUNDRED + rate)
        total = to_money(value)
        taxable_money = to_money(taxable)
        return TaxComputation(
            taxable_amount=taxable_money,
            tax_amount=total - taxable_money,
            total_amount=total,
            tax_rate_percent=rate,
        )

    tax = value * rate / ONE_HUNDRED
    taxable_money = to_money(value)
    tax_money = to_money(tax)
    return TaxComputation(
        taxable_amount=taxable_money,
        tax_amount=tax_money,
        total_amount=taxable_money + tax_money,
        tax_rate_percent=rate,
    )


def compute_order_totals(lines: Iterable[LineInput], tax_rate_percent: Number = 0) -> OrderTotals:
    """
    计算整单金额（不含税方式）

    行金额累加为小计，税额基于整单小计计算并舍入一次。
    """
    lines = list(lines)
    if not lines:
        raise ValidationError("请提供至少一条商品明细")

    line_totals = [
        calculate_line_total(line.unit_price, line.quantity, line.discount)
        for line in lines
    ]
    subtotal = sum(line_totals, ZERO)
    result = compute_tax_totals(subtotal, tax_rate_percent, TaxMode.EXCLUSIVE)

    return OrderTotals(
        line_totals=line_totals,
        subtotal=result.taxable_amount,
        tax=result.tax_amount,
        total_amount=result.total_amount,
        tax_rate_percent=result.tax_rate_percent,
    )
