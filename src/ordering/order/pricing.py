"""Order totals, computed once at checkout and never again."""


def compute_order_totals(lines, tax=0.0) -> dict:
    """Sum price snapshots and per-line shipping into order totals.

    ``lines`` are mappings with ``unit_price``, ``quantity`` and
    ``shipping_cost``. Tax is supplied by the caller, not computed here.
    """
    subtotal = round(sum(line["unit_price"] * line["quantity"] for line in lines), 2)
    shipping = round(sum(line.get("shipping_cost", 0.0) for line in lines), 2)
    tax = round(tax or 0.0, 2)
    return {
        "subtotal": subtotal,
        "shipping_cost": shipping,
        "tax": tax,
        "total": round(subtotal + shipping + tax, 2),
    }
