"""
Comparison prompt generation. Deterministic: the same company and competitor list
always yield the same prompts in the same order.
"""

from __future__ import annotations

from schemas import BrandPrompt, Company, CustomPrompt

PROMPT_CATEGORIES = ("ranking", "comparison", "alternatives", "recommendations")

MAX_LISTED_COMPETITORS = 4
MAX_VERSUS_COMPETITORS = 3

# (industry value, content keywords, product context, category context); first match wins
CONTEXT_RULES = [
    ("outdoor gear", ("cooler", "drinkware", "tumbler", "outdoor"), "coolers and drinkware", "outdoor gear brands"),
    ("web scraping", ("web scraping", "data extraction", "crawler"), "web scraping tools", "data extraction services"),
    (None, ("ai", "artificial intelligence", "machine learning"), "AI tools", "artificial intelligence platforms"),
    (None, ("software", "saas", "application"), "software solutions", "SaaS platforms"),
    (None, ("clothing", "apparel", "fashion"), "clothing and apparel", "fashion brands"),
    (None, ("furniture", "home", "decor"), "furniture and home goods", "home furnishing brands"),
]


def derive_context(company: Company) -> tuple[str, str]:
    """Return (product_context, category_context): what the company sells and what kind of brand it is."""
    scraped = company.scraped_data
    keywords = list(scraped.keywords) if scraped else []
    main_products = list(scraped.main_products) if scraped else []
    description = (scraped.description if scraped and scraped.description else company.description) or ""

    product_context = ""
    category_context = ""

    if main_products:
        product_context = " and ".join(main_products[:2])
        products_lower = " ".join(main_products).lower()
        if "cooler" in products_lower or "drinkware" in products_lower:
            category_context = "outdoor gear brands"
        elif "software" in products_lower or "api" in products_lower:
            category_context = "software companies"
        else:
            category_context = f"{main_products[0]} brands"

    all_context = f"{' '.join(k.lower() for k in keywords)} {description.lower()} {' '.join(main_products)}"

    if not product_context:
        industry_lower = (company.industry or "").lower()
        for industry, hints, product, category in CONTEXT_RULES:
            if (industry and industry_lower == industry) or any(h in all_context for h in hints):
                product_context, category_context = product, category
                break
        else:
            product_context = " and ".join(keywords[:3]) or "products"
            category_context = company.industry or "companies"

    # A cooler brand misread as a beverage brand
    if "beverage" in product_context and (company.name.lower() == "yeti" or "cooler" in all_context):
        product_context = "coolers and outdoor gear"
        category_context = "outdoor equipment brands"

    return product_context, category_context


def _templates(company: Company, competitors: list[str], product: str, category: str) -> dict[str, list[str]]:
    brand = company.name
    scraped = company.scraped_data
    main_products = list(scraped.main_products) if scraped else []
    listed = ", ".join(competitors[:MAX_LISTED_COMPETITORS])
    top = competitors[:MAX_VERSUS_COMPETITORS]
    versus = " vs ".join(top)
    top_listed = ", ".join(top)
    market = product.split(" ")[0]

    if competitors and main_products:
        third_comparison = f"{competitors[0]} or {brand} which has better {main_products[0]}"
    else:
        third_comparison = f"{brand} compared to {top_listed}"
    if main_products:
        worth_it = f"Is {brand} {main_products[0]} worth buying compared to {top_listed}?"
    else:
        worth_it = f"Is {brand} worth it for {product} compared to {top_listed}?"

    return {
        "ranking": [
            f"Compare {listed} and {brand} for {product}",
            f"Rank {listed} and {brand} by their {product} capabilities",
            f"Which is better for {product}: {versus} vs {brand}?",
            f"Top {category} including {listed} and {brand}",
        ],
        "comparison": [
            f"{brand} vs {versus} for {product}",
            f"How does {brand} compare to {listed}?",
            third_comparison,
        ],
        "alternatives": [
            f"Alternatives to {brand}: {listed}",
            f"{category} similar to {brand}: {listed}",
            f"Competitors of {brand} in {market} market: {listed}",
        ],
        "recommendations": [
            worth_it,
            f"{brand} {product} reviews vs {top_listed}",
            f"Should I buy {brand} or {top_listed} for {product}?",
            f"Best {product} among {brand} and {listed}",
        ],
    }


def generate_prompts_for_company(company: Company, competitors: list[str]) -> list[BrandPrompt]:
    """Ranking prompts first, then comparison, alternatives, recommendations; ids count up from "1"."""
    product, category = derive_context(company)
    templates = _templates(company, competitors, product, category)
    prompts: list[BrandPrompt] = []
    for category_name in PROMPT_CATEGORIES:
        for text in templates[category_name]:
            prompts.append(BrandPrompt(id=str(len(prompts) + 1), prompt=text, category=category_name))
    return prompts


def apply_prompt_edits(
    prompts: list[BrandPrompt],
    custom_prompts: list[CustomPrompt] | None = None,
    removed_indices: list[int] | None = None,
) -> list[BrandPrompt]:
    """Drop generated prompts by index, append user prompts, and renumber ids from "1"."""
    removed = set(removed_indices or [])
    kept = [(p.prompt, p.category) for i, p in enumerate(prompts) if i not in removed]
    existing = {text.strip().lower() for text, _ in kept}
    for custom in custom_prompts or []:
        text = custom.prompt.strip()
        if text and text.lower() not in existing:
            existing.add(text.lower())
            kept.append((text, custom.category))
    return [BrandPrompt(id=str(i + 1), prompt=text, category=category) for i, (text, category) in enumerate(kept)]
