"""
Totals Engine — one formula for line, group and document totals.

    line amount   = qty × (supply_rate + install_rate)
    sgst = cgst   = 9% × taxed subtotal
    round_off     = round_half_up(total) − total
    grand_total   = subtotal + sgst + cgst + round_off

Tax scopes:
    supply_and_install — taxed subtotal = supply + install
    supply_only        — taxed subtotal = supply; install carried untaxed
"""
import math
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Optional

from boq_estimator.config import CGST_RATE, DEFAULT_TAX_SCOPE, SGST_RATE, TAX_SCOPES


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def line_amount(line) -> float:
    return line.quantity * (line.supply_rate + line.install_rate)


@dataclass
class Totals:
    supply_amount: float
    install_amount: float
    subtotal: float
    taxed_subtotal: float
    sgst: float
    cgst: float
    round_off: float
    grand_total: float
    tax_scope: str

    @property
    def tax_total(self) -> float:
        return self.sgst + self.cgst

    def to_dict(self, precision: Optional[int] = 2) -> Dict:
        d = asdict(self)
        d["tax_total"] = self.tax_total
        if precision is None:
            return d
        return {k: round(v, precision) if isinstance(v, float) else v for k, v in d.items()}


class TotalsEngine:
    def __init__(self, sgst_rate: float = SGST_RATE, cgst_rate: float = CGST_RATE,
                 tax_scope: str = DEFAULT_TAX_SCOPE):
        if tax_scope not in TAX_SCOPES:
            raise ValueError(f"Unknown tax scope '{tax_scope}', expected one of {TAX_SCOPES}")
        self.sgst_rate = sgst_rate
        self.cgst_rate = cgst_rate
        self.tax_scope = tax_scope

    def from_amounts(self, supply_amount: float, install_amount: float,
                     tax_scope: Optional[str] = None) -> Totals:
        scope = tax_scope or self.tax_scope
        if scope not in TAX_SCOPES:
            raise ValueError(f"Unknown tax scope '{scope}', expected one of {TAX_SCOPES}")
        subtotal = supply_amount + install_amount
        taxed = supply_amount if scope == "supply_only" else subtotal
        sgst = taxed * self.sgst_rate
        cgst = taxed * self.cgst_rate
        pre_round = subtotal + sgst + cgst
        round_off = round_half_up(pre_round) - pre_round
        return Totals(
            supply_amount=supply_amount,
            install_amount=install_amount,
            subtotal=subtotal,
            taxed_subtotal=taxed,
            sgst=sgst,
            cgst=cgst,
            round_off=round_off,
            grand_total=pre_round + round_off,
            tax_scope=scope,
        )

    def compute(self, lines: Iterable, tax_scope: Optional[str] = None) -> Totals:
        """``lines``: anything exposing quantity, supply_rate and install_rate."""
        supply = 0.0
        install = 0.0
        for line in lines:
            supply += line.quantity * line.supply_rate
            install += line.quantity * line.install_rate
        return self.from_amounts(supply, install, tax_scope)
