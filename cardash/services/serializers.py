"""Row -> dict conversion shared by routers and activity-log snapshots."""

from ..utils import iso, money


def customer_to_dict(c, balance: float | None = None) -> dict | None:
    if c is None:
        return None
    out = {
        "id": c.id,
        "name": c.name,
        "phone": c.phone,
        "email": c.email,
        "address": c.address,
        "car_number": c.car_number,
        "id_number": c.id_number,
        "age": c.age,
        "created_at": iso(c.created_at),
    }
    if balance is not None:
        out["balance"] = balance
    return out


def provider_to_dict(p) -> dict | None:
    if p is None:
        return None
    return {
        "id": p.id,
        "name": p.name,
        "address": p.address,
        "phone": p.phone,
        "created_at": iso(p.created_at),
    }


def car_to_dict(car, show_buy_price: bool = True) -> dict | None:
    if car is None:
        return None
    out = {
        "id": car.id,
        "title": car.title,
        "brand": car.brand,
        "year": car.year,
        "status": car.status,
        "type": car.type,
        "car_number": car.car_number,
        "kilometers": car.kilometers,
        "market_price": money(car.market_price),
        "sale_price": money(car.sale_price),
        "description": car.description,
        "features": car.features or [],
        "images": car.images or [],
        "public": bool(car.public),
        "show_in_sales": bool(car.show_in_sales),
        "show_in_featured": bool(car.show_in_featured),
        "show_in_new_car": bool(car.show_in_new_car),
        "show_in_used_car": bool(car.show_in_used_car),
        "show_in_luxury_car": bool(car.show_in_luxury_car),
        "provider_id": car.provider_id,
        "provider_name": car.provider.name if car.provider else None,
        "source_customer_id": car.source_customer_id,
        "source_customer_name": car.source_customer.name if car.source_customer else None,
        "created_at": iso(car.created_at),
        "updated_at": iso(car.updated_at),
    }
    if show_buy_price:
        out["buy_price"] = money(car.buy_price)
    return out


def _optional_money(v):
    return money(v) if v is not None else None


def deal_to_dict(d) -> dict | None:
    if d is None:
        return None
    return {
        "id": d.id,
        "title": d.title,
        "description": d.description,
        "deal_type": d.deal_type,
        "status": d.status,
        "amount": money(d.amount),
        "selling_price": _optional_money(d.selling_price),
        "loss_amount": _optional_money(d.loss_amount),
        "commission": _optional_money(d.commission),
        "customer_car_eval_value": _optional_money(d.customer_car_eval_value),
        "additional_company_amount": _optional_money(d.additional_company_amount),
        "customer_id": d.customer_id,
        "seller_id": d.seller_id,
        "buyer_id": d.buyer_id,
        "car_id": d.car_id,
        "customer_car_id": d.customer_car_id,
        "customer_name": d.customer_name,
        "created_at": iso(d.created_at),
        "updated_at": iso(d.updated_at),
    }


def payment_to_dict(p) -> dict:
    return {
        "id": p.id,
        "payment_type": p.payment_type,
        "amount": money(p.amount),
        "payment_date": p.payment_date.isoformat() if p.payment_date else None,
        "reference": p.reference,
    }


def bill_to_dict(b) -> dict | None:
    if b is None:
        return None
    return {
        "id": b.id,
        "deal_id": b.deal_id,
        "customer_id": b.customer_id,
        "customer_name": b.customer_name,
        "bill_type": b.bill_type,
        "bill_direction": b.bill_direction,
        "status": b.status,
        "description": b.description,
        "amount": money(b.amount),
        "tax_amount": money(b.tax_amount),
        "total_with_tax": money(b.total_with_tax),
        "payments": [payment_to_dict(p) for p in b.payments],
        "tranzila_document_id": b.tranzila_document_id,
        "tranzila_document_number": b.tranzila_document_number,
        "has_tranzila_document": bool(b.tranzila_retrieval_key),
        "tranzila_created_at": iso(b.tranzila_created_at),
        "created_at": iso(b.created_at),
    }
