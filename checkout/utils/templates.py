from fastapi.templating import Jinja2Templates

from checkout.config import TEMPLATES_DIR
from checkout.pricing import format_amount, format_price

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["price"] = format_price
templates.env.filters["amount"] = format_amount
