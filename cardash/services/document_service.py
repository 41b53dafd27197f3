"""PDF document generation using WeasyPrint."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from sqlalchemy.orm import Session

from ..models import CompanySettings, Deal
from ..utils import money
from .balance_service import calculate_deal_balance

log = logging.getLogger(__name__)

_jinja_env = Environment(
    loader=FileSystemLoader(str(Path(__file__).resolve().parent.parent / "templates" / "documents")),
    autoescape=True,
)

CONTRACT_LANGUAGES = ("he", "en", "ar")
RTL_LANGUAGES = ("he", "ar")
OWNERSHIP_TRANSFER_DAYS = 7

_LABELS = {
    "he": {
        "title": "הסכם מכירת רכב",
        "signed_on": "הסכם זה נחתם ונערך ביום",
        "seller": "המוכר:",
        "buyer": "הקונה:",
        "business_name": "שם העסק (מגרש הרכב)",
        "registration": "מספר עוסק מורשה/ח.פ",
        "address": "כתובת",
        "phone": "טלפון",
        "full_name": "שם מלא",
        "id_number": "מספר ת.ז",
        "car_details": "פרטי הרכב הנמכר",
        "car_type": "סוג הרכב",
        "make": "יצרן",
        "model": "דגם",
        "year": "שנת ייצור",
        "plate": "מספר רישוי",
        "kilometers": 'ק"מ נוכחי',
        "deal_nature": "מהות העסקה",
        "normal_sale": "מכירה רגילה",
        "trade_in": "עסקת טרייד אין / החלפה",
        "trade_in_details": "פרטי הרכב של הקונה שנמסר בתמורה:",
        "estimated_value": 'שווי מוערך ע"י המוכר',
        "consideration": "תמורה",
        "total_intro": "הצדדים מסכימים כי תמורת הרכב, ישלם הקונה למוכר את הסכום הכולל של:",
        "paid_at_signing": "סכום ששולם במעמד החתימה",
        "remaining": "יתרה לתשלום",
        "terms": "תנאי העסקה",
        "term_lines": [
            'הרכב נמכר במצבו הנוכחי ("כמות שהוא").',
            "הקונה מצהיר כי בדק את הרכב, נסע בו, ואין לו טענות באשר למצבו המכני או החזותי.",
            f"המוכר מתחייב להעביר את בעלות הרכב תוך {OWNERSHIP_TRANSFER_DAYS} ימי עסקים.",
            "הקונה יהיה אחראי על כל התחייבות/קנס/אגרה/נזק שיגיע לאחר מועד החתימה.",
            "במידה והרכב נמצא תחת שעבוד או עיקול – המוכר מתחייב להסירו לפני העברת הבעלות.",
        ],
        "trade_in_term": "במידה ועסקה זו כוללת טרייד אין – האחריות למצב הרכב שנמסר חלה על הקונה, והוא מצהיר כי מסר את הרכב למגרש לאחר גילוי מלא.",
        "declarations": "הצהרות",
        "declaration_lines": [
            "הצדדים מאשרים שכל הפרטים נכונים ושהם חותמים על ההסכם מרצונם החופשי.",
            "הצדדים מודעים כי הסכם זה מחייב מבחינה משפטית.",
        ],
        "seller_signature": "חתימת המוכר:",
        "buyer_signature": "חתימת הקונה:",
    },
    "en": {
        "title": "Vehicle Sale Agreement",
        "signed_on": "This agreement was made and signed on",
        "seller": "Seller:",
        "buyer": "Buyer:",
        "business_name": "Business name (dealership)",
        "registration": "Registration number",
        "address": "Address",
        "phone": "Phone",
        "full_name": "Full name",
        "id_number": "ID number",
        "car_details": "Vehicle details",
        "car_type": "Vehicle type",
        "make": "Make",
        "model": "Model",
        "year": "Year",
        "plate": "License plate",
        "kilometers": "Current mileage (km)",
        "deal_nature": "Nature of the deal",
        "normal_sale": "Regular sale",
        "trade_in": "Trade-in / exchange",
        "trade_in_details": "Buyer's vehicle handed over as part of the price:",
        "estimated_value": "Value estimated by the seller",
        "consideration": "Consideration",
        "total_intro": "The parties agree that in return for the vehicle the buyer shall pay the seller a total of:",
        "paid_at_signing": "Amount paid at signing",
        "remaining": "Remaining balance",
        "terms": "Terms",
        "term_lines": [
            'The vehicle is sold in its current condition ("as is").',
            "The buyer declares that they inspected and test-drove the vehicle and have no claims regarding its mechanical or visual condition.",
            f"The seller undertakes to transfer ownership within {OWNERSHIP_TRANSFER_DAYS} business days.",
            "The buyer is responsible for any obligation, fine, fee or damage arising after signing.",
            "If the vehicle is subject to a lien or attachment, the seller undertakes to remove it before the transfer of ownership.",
        ],
        "trade_in_term": "Where this deal includes a trade-in, responsibility for the condition of the handed-over vehicle lies with the buyer, who declares full disclosure.",
        "declarations": "Declarations",
        "declaration_lines": [
            "The parties confirm that all details are correct and that they sign of their own free will.",
            "The parties are aware that this agreement is legally binding.",
        ],
        "seller_signature": "Seller signature:",
        "buyer_signature": "Buyer signature:",
    },
    "ar": {
        "title": "اتفاقية بيع مركبة",
        "signed_on": "تم توقيع هذه الاتفاقية بتاريخ",
        "seller": "البائع:",
        "buyer": "المشتري:",
        "business_name": "اسم المعرض",
        "registration": "رقم التسجيل",
        "address": "العنوان",
        "phone": "الهاتف",
        "full_name": "الاسم الكامل",
        "id_number": "رقم الهوية",
        "car_details": "تفاصيل المركبة",
        "car_type": "نوع المركبة",
        "make": "الشركة المصنعة",
        "model": "الطراز",
        "year": "سنة الصنع",
        "plate": "رقم الترخيص",
        "kilometers": "عدد الكيلومترات",
        "deal_nature": "طبيعة الصفقة",
        "normal_sale": "بيع عادي",
        "trade_in": "استبدال",
        "trade_in_details": "تفاصيل مركبة المشتري المسلمة كجزء من الثمن:",
        "estimated_value": "القيمة المقدرة من البائع",
        "consideration": "الثمن",
        "total_intro": "يتفق الطرفان على أن يدفع المشتري للبائع مقابل المركبة مبلغاً إجمالياً قدره:",
        "paid_at_signing": "المبلغ المدفوع عند التوقيع",
        "remaining": "المبلغ المتبقي",
        "terms": "شروط الصفقة",
        "term_lines": [
            "تباع المركبة بحالتها الراهنة.",
            "يقر المشتري بأنه فحص المركبة وقادها وليس لديه أي ادعاءات بشأن حالتها.",
            f"يلتزم البائع بنقل الملكية خلال {OWNERSHIP_TRANSFER_DAYS} أيام عمل.",
            "يتحمل المشتري أي التزام أو غرامة أو رسوم أو ضرر بعد تاريخ التوقيع.",
            "إذا كانت المركبة مرهونة أو محجوزة يلتزم البائع بإزالة ذلك قبل نقل الملكية.",
        ],
        "trade_in_term": "في حال تضمنت الصفقة استبدالاً تقع مسؤولية حالة المركبة المسلمة على المشتري.",
        "declarations": "إقرارات",
        "declaration_lines": [
            "يؤكد الطرفان صحة جميع التفاصيل وأنهما يوقعان بمحض إرادتهما.",
            "يدرك الطرفان أن هذه الاتفاقية ملزمة قانونياً.",
        ],
        "seller_signature": "توقيع البائع:",
        "buyer_signature": "توقيع المشتري:",
    },
}


def format_ils(amount) -> str:
    return f"₪{money(amount):,.0f}"


def render_deal_contract_html(deal_id: int, db: Session, lang: str = "he") -> str:
    if lang not in CONTRACT_LANGUAGES:
        raise ValueError(f"Unsupported contract language: {lang}")
    deal = db.get(Deal, deal_id)
    if not deal:
        raise ValueError(f"Deal {deal_id} not found")

    company = db.query(CompanySettings).order_by(CompanySettings.id).first() or CompanySettings()
    buyer = deal.buyer or deal.customer
    trade_in = deal.deal_type == "exchange"
    total = money(deal.selling_price) or money(deal.amount)
    # Balance starts at -total and climbs with car credit and receipts
    paid = total + calculate_deal_balance(deal, deal.bills)
    remaining = max(0.0, total - paid)

    template = _jinja_env.get_template("deal_contract.html")
    return template.render(
        lang=lang,
        rtl=lang in RTL_LANGUAGES,
        t=_LABELS[lang],
        deal=deal,
        company=company,
        buyer=buyer,
        car=deal.car,
        trade_in=trade_in,
        trade_in_car=deal.customer_car,
        trade_in_value=format_ils(deal.customer_car_eval_value),
        deal_date=(deal.created_at or datetime.now(timezone.utc)).strftime("%d/%m/%Y"),
        total_amount=format_ils(total),
        paid_amount=format_ils(max(0.0, paid)),
        remaining_raw=remaining,
        remaining_amount=format_ils(remaining),
        signature=deal.signature,
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
    )


def generate_deal_contract_pdf(deal_id: int, db: Session, lang: str = "he") -> bytes:
    """Render the sale contract for a deal as PDF."""
    html = render_deal_contract_html(deal_id, db, lang)

    from weasyprint import HTML
    return HTML(string=html).write_pdf()
