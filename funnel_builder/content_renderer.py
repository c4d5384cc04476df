"""Render structured page content into standalone HTML preview documents.

Page bodies arrive as loosely shaped JSON produced by the page generators. The
renderer picks out the sections it knows for each page type, fills in defaults
for anything missing and never raises: unexpected shapes degrade to ``None``,
which callers treat the same as "no preview available".
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from html import escape
from typing import Any, Optional

from funnel_builder.config import settings

logger = logging.getLogger(__name__)

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")

_BASE_STYLES = """
*{box-sizing:border-box;margin:0;padding:0}
body{font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,Helvetica,Arial,sans-serif;color:#1a1a2e;background:#f8f9fb;line-height:1.6}
a{color:__PRIMARY__;text-decoration:none}
.container{max-width:1080px;margin:0 auto;padding:0 24px}
.nav{display:flex;align-items:center;justify-content:space-between;padding:18px 24px;background:#fff;border-bottom:1px solid rgba(0,0,0,.06)}
.nav .brand{font-weight:800;font-size:1.15rem}
.nav .links a{margin-left:20px;color:#555;font-size:.9rem}
.hero{text-align:center;padding:72px 24px 56px;background:linear-gradient(135deg,__PRIMARY__11 0%,#ffffff 100%)}
.hero .badge{display:inline-block;padding:4px 12px;border-radius:999px;background:__PRIMARY__1a;color:__PRIMARY__;font-size:.75rem;font-weight:700;margin-bottom:16px}
.hero h1{font-size:2.4rem;font-weight:800;margin-bottom:12px}
.hero p{font-size:1.1rem;color:#555;max-width:640px;margin:0 auto 24px}
.btn{display:inline-block;padding:12px 28px;border-radius:8px;background:__PRIMARY__;color:#fff;font-weight:700;border:none;cursor:pointer;font-size:1rem}
.btn.secondary{background:transparent;color:__PRIMARY__;border:2px solid __PRIMARY__;margin-left:8px}
.section{padding:56px 24px}
.section h2{text-align:center;font-size:1.8rem;font-weight:800;margin-bottom:8px}
.section .sub{text-align:center;color:#666;margin-bottom:32px}
.grid{display:grid;grid-template-columns:repeat(auto-fit,minmax(220px,1fr));gap:20px}
.card{background:#fff;border-radius:12px;padding:24px;border:1px solid rgba(0,0,0,.06)}
.card h3{font-size:1.05rem;font-weight:700;margin-bottom:6px}
.card p{color:#666;font-size:.92rem}
.plan{text-align:center}
.plan.popular{border:2px solid __PRIMARY__}
.plan .price{font-size:2rem;font-weight:800;margin:8px 0 16px}
.plan ul{list-style:none;margin-bottom:20px;text-align:left}
.plan li{padding:4px 0;color:#555;font-size:.9rem}
.plan li:before{content:"\\2713  ";color:__PRIMARY__;font-weight:700}
.tag{display:inline-block;padding:2px 10px;border-radius:999px;background:__PRIMARY__;color:#fff;font-size:.7rem;font-weight:700}
.form{max-width:440px;margin:0 auto;background:#fff;border-radius:12px;padding:32px;border:1px solid rgba(0,0,0,.06)}
.form label{display:block;font-size:.85rem;font-weight:600;margin:14px 0 6px}
.form input{width:100%;padding:11px 12px;border:1px solid #dcdfe6;border-radius:8px;font-size:.95rem}
.form .btn{width:100%;margin-top:22px}
.form .aside{text-align:center;font-size:.85rem;color:#777;margin-top:16px}
.checklist{list-style:none;max-width:520px;margin:0 auto}
.checklist li{padding:10px 0;border-bottom:1px solid rgba(0,0,0,.05)}
.checklist li strong{display:block}
.stats{display:flex;justify-content:center;gap:48px;flex-wrap:wrap;text-align:center}
.stats .value{font-size:2rem;font-weight:800;color:__PRIMARY__}
.stats .label{color:#666;font-size:.85rem}
blockquote{font-style:italic;color:#444;margin-bottom:12px}
.muted{color:#888;font-size:.85rem}
.badges{display:flex;justify-content:center;gap:16px;flex-wrap:wrap;margin-top:20px;color:#777;font-size:.8rem}
.confirm{max-width:560px;margin:0 auto;text-align:center;background:#fff;border-radius:12px;padding:28px;border:1px solid rgba(0,0,0,.06)}
.footer-cta{text-align:center;padding:56px 24px;background:__PRIMARY__;color:#fff}
.footer-cta h2{font-size:1.8rem;font-weight:800;margin-bottom:8px}
.footer-cta .btn{background:#fff;color:__PRIMARY__;margin-top:16px}
.placeholder{max-width:480px;margin:96px auto;text-align:center;background:#fff;border:2px dashed rgba(0,0,0,.12);border-radius:16px;padding:40px}
.placeholder h1{font-size:1.4rem;margin-bottom:8px}
"""


def _color(content: dict[str, Any]) -> str:
    theme = content.get("theme") if isinstance(content.get("theme"), dict) else {}
    for candidate in (content.get("primaryColor"), content.get("primary_color"), theme.get("primaryColor")):
        if isinstance(candidate, str) and _HEX_COLOR_RE.match(candidate.strip()):
            return candidate.strip()
    return settings.PREVIEW_PRIMARY_COLOR


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, bool):
        value = None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        value = default
    return escape(value, quote=True)


def _raw(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _first(mapping: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _cta_text(value: Any, default: str = "") -> str:
    if isinstance(value, dict):
        value = _first(value, "text", "label")
    return _text(value, default)


def _document(*, title: str, body: str, primary: str) -> str:
    styles = _BASE_STYLES.replace("__PRIMARY__", primary)
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1">\n'
        f"<title>{title}</title>\n"
        f"<style>{styles}</style>\n"
        "</head>\n"
        f"<body>\n{body}\n</body>\n"
        "</html>\n"
    )


def _nav(nav: dict[str, Any], brand: Any = None) -> str:
    brand_text = _text(_first(nav, "brand", "logo") or brand)
    if not nav and not brand_text:
        return ""
    links = "".join(
        f'<a href="#">{_text(link.get("label") if isinstance(link, dict) else link)}</a>'
        for link in _list(nav.get("links"))
    )
    cta = nav.get("cta")
    cta_html = f' <a class="btn" href="#">{_cta_text(cta)}</a>' if cta else ""
    return f'<nav class="nav"><span class="brand">{brand_text}</span><span class="links">{links}{cta_html}</span></nav>'


def _hero(hero: dict[str, Any], *, default_headline: str, default_sub: str = "", default_cta: str = "") -> str:
    parts = ['<header class="hero">']
    if hero.get("badge"):
        parts.append(f'<span class="badge">{_text(hero.get("badge"))}</span>')
    parts.append(f"<h1>{_text(hero.get('headline') or hero.get('title'), default_headline)}</h1>")
    sub = _text(_first(hero, "subheading", "subheadline", "subtitle", "description"), default_sub)
    if sub:
        parts.append(f"<p>{sub}</p>")
    primary = _cta_text(_first(hero, "cta_primary", "primaryCta", "cta"), default_cta)
    secondary = _cta_text(_first(hero, "cta_secondary", "secondaryCta"))
    if primary:
        parts.append(f'<a class="btn" href="#">{primary}</a>')
    if secondary:
        parts.append(f'<a class="btn secondary" href="#">{secondary}</a>')
    if hero.get("social_proof"):
        parts.append(f'<p class="muted">{_text(hero.get("social_proof"))}</p>')
    parts.append("</header>")
    return "".join(parts)


def _section(inner: str, *, headline: Any = None, sub: Any = None, default_headline: str = "") -> str:
    heading = _text(headline, default_headline)
    heading_html = f"<h2>{heading}</h2>" if heading else ""
    sub_text = _text(sub)
    sub_html = f'<p class="sub">{sub_text}</p>' if sub_text else ""
    return f'<section class="section"><div class="container">{heading_html}{sub_html}{inner}</div></section>'


def _cards(items: list[Any]) -> str:
    cards = []
    for item in items:
        if isinstance(item, str):
            cards.append(f'<div class="card"><h3>{_text(item)}</h3></div>')
            continue
        item = _dict(item)
        if not item:
            continue
        title = _text(_first(item, "title", "name", "headline"))
        body = _text(_first(item, "description", "body", "text"))
        cards.append(f'<div class="card"><h3>{title}</h3><p>{body}</p></div>')
    return f'<div class="grid">{"".join(cards)}</div>' if cards else ""


def _checklist(items: list[Any]) -> str:
    rows = []
    for item in items:
        if isinstance(item, str):
            rows.append(f"<li>{_text(item)}</li>")
        elif isinstance(item, dict):
            title = _text(_first(item, "title", "name", "step"))
            body = _text(_first(item, "description", "text"))
            rows.append(f"<li><strong>{title}</strong>{body}</li>")
    return f'<ul class="checklist">{"".join(rows)}</ul>' if rows else ""


def _plans(plans: list[Any]) -> str:
    cards = []
    for plan in plans:
        plan = _dict(plan)
        if not plan:
            continue
        popular = bool(plan.get("popular") or plan.get("highlighted"))
        features = "".join(
            f"<li>{_text(feature.get('text') if isinstance(feature, dict) else feature)}</li>"
            for feature in _list(plan.get("features"))
        )
        tag = '<span class="tag">Most popular</span>' if popular else ""
        period = _text(plan.get("period"))
        period_html = f'<span class="muted"> / {period}</span>' if period else ""
        cards.append(
            f'<div class="card plan{" popular" if popular else ""}">{tag}'
            f"<h3>{_text(_first(plan, 'name', 'title'), 'Plan')}</h3>"
            f'<div class="price">{_text(plan.get("price"), "Free")}{period_html}</div>'
            f"<ul>{features}</ul>"
            f'<a class="btn" href="#">{_cta_text(_first(plan, "cta", "ctaText"), "Choose Plan")}</a></div>'
        )
    return f'<div class="grid">{"".join(cards)}</div>' if cards else ""


def _testimonials(items: list[Any]) -> str:
    cards = []
    for item in items:
        item = _dict(item)
        quote = _text(_first(item, "quote", "text", "content"))
        if not quote:
            continue
        author = _text(_first(item, "author", "name"))
        role = _text(_first(item, "role", "title", "company"))
        byline = f"{author}, {role}" if author and role else author or role
        cards.append(f'<div class="card"><blockquote>&ldquo;{quote}&rdquo;</blockquote><p class="muted">{byline}</p></div>')
    return f'<div class="grid">{"".join(cards)}</div>' if cards else ""


def _stats(items: list[Any]) -> str:
    cells = []
    for item in items:
        item = _dict(item)
        if not item:
            continue
        cells.append(
            f'<div><div class="value">{_text(item.get("value"))}</div>'
            f'<div class="label">{_text(item.get("label"))}</div></div>'
        )
    return f'<div class="stats">{"".join(cells)}</div>' if cells else ""


def _form(form: dict[str, Any], *, default_fields: list[dict[str, str]], default_submit: str, aside: str = "") -> str:
    fields = [field for field in _list(form.get("fields")) if isinstance(field, (dict, str))] or default_fields
    rows = []
    for field in fields:
        if isinstance(field, str):
            field = {"label": field}
        label = _text(_first(field, "label", "name"), "Field")
        input_type = _text(field.get("type"), "text")
        name = _text(_first(field, "name", "label"), "field")
        placeholder = _text(field.get("placeholder"))
        rows.append(
            f"<label>{label}</label>"
            f'<input type="{input_type}" name="{name}" placeholder="{placeholder}">'
        )
    submit = _cta_text(_first(form, "submit_text", "submitText", "button_text", "cta"), default_submit)
    aside_html = f'<p class="aside">{aside}</p>' if aside else ""
    return f'<form class="form" onsubmit="return false">{"".join(rows)}<button class="btn" type="submit">{submit}</button>{aside_html}</form>'


def _footer_cta(cta: dict[str, Any]) -> str:
    if not cta:
        return ""
    return (
        '<section class="footer-cta">'
        f"<h2>{_text(cta.get('headline'), 'Ready to get started?')}</h2>"
        f"<p>{_text(_first(cta, 'subheading', 'subheadline'))}</p>"
        f'<a class="btn" href="#">{_cta_text(_first(cta, "button_text", "cta"), "Get Started")}</a>'
        "</section>"
    )


def _plan_list(content: dict[str, Any]) -> list[Any]:
    pricing = _dict(content.get("pricing"))
    return _list(pricing.get("plans")) or _list(content.get("plans"))


_EMAIL_FIELD = {"label": "Email", "type": "email", "name": "email", "placeholder": "you@example.com"}
_PASSWORD_FIELD = {"label": "Password", "type": "password", "name": "password", "placeholder": "••••••••"}


def _render_register(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    form = _dict(content.get("form") or content.get("registration_form"))
    benefits = _list(content.get("benefits"))
    body = [
        _hero(hero, default_headline="Create your account", default_sub="Join in less than a minute."),
        _section(
            _form(
                form,
                default_fields=[
                    {"label": "Full name", "type": "text", "name": "name", "placeholder": "Jane Doe"},
                    _EMAIL_FIELD,
                    _PASSWORD_FIELD,
                ],
                default_submit="Create Account",
                aside=_text(form.get("login_text"), "Already have an account? Sign in"),
            )
        ),
    ]
    if benefits:
        body.append(_section(_checklist(benefits), default_headline="What you get"))
    return _text(hero.get("headline"), "Create your account"), "\n".join(body)


def _render_login(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    form = _dict(content.get("form") or content.get("login_form"))
    body = [
        _hero(hero, default_headline="Welcome back", default_sub="Sign in to continue."),
        _section(
            _form(
                form,
                default_fields=[_EMAIL_FIELD, _PASSWORD_FIELD],
                default_submit="Sign In",
                aside=_text(form.get("forgot_text"), "Forgot your password?"),
            )
        ),
    ]
    return _text(hero.get("headline"), "Sign in"), "\n".join(body)


def _render_checkout(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    product = _dict(content.get("product"))
    payment_form = _dict(content.get("payment_form"))
    body = [_hero(hero, default_headline="Complete your purchase")]
    if product:
        summary = (
            f'<div class="confirm"><h3>{_text(product.get("name"), "Your order")}</h3>'
            f'<div class="price">{_text(product.get("price"))}</div>'
            f"<p>{_text(product.get('description'))}</p></div>"
        )
        body.append(_section(summary, default_headline="Order summary"))
    plans = _plan_list(content)
    if plans:
        body.append(_section(_plans(plans), headline=_dict(content.get("pricing")).get("title"), default_headline="Choose your plan"))
    body.append(
        _section(
            _form(
                payment_form,
                default_fields=[
                    _EMAIL_FIELD,
                    {"label": "Card number", "type": "text", "name": "card", "placeholder": "4242 4242 4242 4242"},
                    {"label": "Expiry", "type": "text", "name": "expiry", "placeholder": "MM / YY"},
                    {"label": "CVC", "type": "text", "name": "cvc", "placeholder": "123"},
                ],
                default_submit="Complete Purchase",
                aside=_text(content.get("guarantee")),
            ),
            default_headline="Payment details",
        )
    )
    badges = [f"<span>{_text(badge)}</span>" for badge in _list(content.get("trust_badges")) if isinstance(badge, str)]
    if badges:
        body.append(f'<div class="badges">{"".join(badges)}</div>')
    return _text(hero.get("headline"), "Checkout"), "\n".join(body)


def _render_thankyou(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    confirmation = _dict(content.get("order_confirmation"))
    body = [
        _hero(
            hero,
            default_headline="Thank you!",
            default_sub="Your order is confirmed. A receipt is on its way to your inbox.",
        )
    ]
    if confirmation:
        order_number = _text(_first(confirmation, "order_number", "orderNumber"))
        body.append(
            _section(
                f'<div class="confirm"><h3>{_text(confirmation.get("title"), "Order confirmed")}</h3>'
                f"<p>{_text(confirmation.get('message'))}</p>"
                + (f'<p class="muted">Order #{order_number}</p>' if order_number else "")
                + "</div>"
            )
        )
    next_steps = _list(content.get("next_steps"))
    if next_steps:
        body.append(_section(_checklist(next_steps), default_headline="What happens next"))
    cta = _first(content, "cta_primary", "cta")
    if cta:
        body.append(_section(f'<p style="text-align:center"><a class="btn" href="#">{_cta_text(cta, "Continue")}</a></p>'))
    if content.get("email_notification"):
        body.append(f'<p class="muted" style="text-align:center">{_text(content.get("email_notification"))}</p>')
    return _text(hero.get("headline"), "Thank you"), "\n".join(body)


def _render_index(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    features = _dict(content.get("features_section"))
    pricing = _dict(content.get("pricing"))
    body = [
        _nav(_dict(content.get("nav")), content.get("brand")),
        _hero(hero, default_headline="Welcome", default_cta=_raw(content.get("ctaButton"), "Get Started")),
    ]
    stats = _stats(_list(content.get("stats")))
    if stats:
        body.append(_section(stats))
    feature_items = _list(features.get("items")) or _list(content.get("features"))
    if feature_items:
        body.append(_section(_cards(feature_items), headline=features.get("headline"), sub=features.get("subheading"), default_headline="Features"))
    for section in _list(content.get("sections")):
        section = _dict(section)
        if section:
            body.append(_section(f"<p>{_text(_first(section, 'body', 'content', 'text'))}</p>", headline=section.get("title")))
    plans = _plan_list(content)
    if plans:
        body.append(_section(_plans(plans), headline=pricing.get("title"), sub=pricing.get("subtitle"), default_headline="Pricing"))
    testimonials = _testimonials(_list(content.get("testimonials")))
    if testimonials:
        body.append(_section(testimonials, default_headline="What our customers say"))
    body.append(_footer_cta(_dict(content.get("cta_footer"))))
    return _text(_first(hero, "headline") or content.get("brand"), "Home"), "\n".join(part for part in body if part)


def _render_features(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    section = _dict(content.get("features_section"))
    items = _list(content.get("features")) or _list(section.get("items"))
    body = [
        _hero(hero, default_headline="Features", default_sub="Everything you need, nothing you don't."),
        _section(_cards(items), headline=section.get("headline"), sub=section.get("subheading")),
        _footer_cta(_dict(content.get("cta_footer"))),
    ]
    return _text(hero.get("headline"), "Features"), "\n".join(part for part in body if part)


def _render_pricing(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    pricing = _dict(content.get("pricing"))
    body = [
        _hero(
            hero,
            default_headline=_raw(pricing.get("title"), "Simple, transparent pricing"),
            default_sub=_raw(pricing.get("subtitle"), ""),
        ),
        _section(_plans(_plan_list(content))),
    ]
    faq_rows = []
    for item in _list(content.get("faq")):
        item = _dict(item)
        if item.get("question"):
            faq_rows.append(f'<div class="card"><h3>{_text(item.get("question"))}</h3><p>{_text(item.get("answer"))}</p></div>')
    if faq_rows:
        body.append(_section("".join(faq_rows), default_headline="Frequently asked questions"))
    return _text(hero.get("headline"), "Pricing"), "\n".join(part for part in body if part)


def _render_about(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    story = _dict(content.get("story"))
    body = [_hero(hero, default_headline="About us")]
    if story:
        body.append(_section(f"<p>{_text(_first(story, 'body', 'content', 'text'))}</p>", headline=story.get("title"), default_headline="Our story"))
    for section in _list(content.get("sections")):
        section = _dict(section)
        if section:
            body.append(_section(f"<p>{_text(_first(section, 'body', 'content', 'text'))}</p>", headline=section.get("title")))
    values = _list(content.get("values"))
    if values:
        body.append(_section(_cards(values), default_headline="Our values"))
    team = []
    for member in _list(content.get("team")):
        member = _dict(member)
        if member.get("name"):
            team.append({"title": member.get("name"), "description": " · ".join(str(v) for v in (member.get("role"), member.get("bio")) if v)})
    if team:
        body.append(_section(_cards(team), default_headline="Meet the team"))
    return _text(hero.get("headline"), "About"), "\n".join(body)


def _render_blog(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    cards = []
    for post in _list(content.get("posts")):
        post = _dict(post)
        if not post.get("title"):
            continue
        meta = " · ".join(_text(v) for v in (post.get("author"), post.get("date")) if v)
        cards.append(
            f'<div class="card"><h3>{_text(post.get("title"))}</h3>'
            f"<p>{_text(_first(post, 'excerpt', 'summary'))}</p>"
            f'<p class="muted">{meta}</p></div>'
        )
    inner = f'<div class="grid">{"".join(cards)}</div>' if cards else '<p class="sub">No posts yet.</p>'
    body = [_hero(hero, default_headline="Blog", default_sub="News, guides and updates."), _section(inner)]
    return _text(hero.get("headline"), "Blog"), "\n".join(body)


def _render_generic(content: dict[str, Any]) -> tuple[str, str]:
    hero = _dict(content.get("hero"))
    body = [_hero(hero, default_headline="Welcome")]
    for section in _list(content.get("sections")):
        section = _dict(section)
        if section:
            body.append(_section(f"<p>{_text(_first(section, 'body', 'content', 'text'))}</p>", headline=section.get("title")))
    items = _list(content.get("features")) or _list(content.get("benefits"))
    if items:
        body.append(_section(_cards(items)))
    return _text(hero.get("headline"), "Preview"), "\n".join(body)


_RENDERERS: dict[str, Callable[[dict[str, Any]], tuple[str, str]]] = {
    "register": _render_register,
    "signup": _render_register,
    "login": _render_login,
    "checkout": _render_checkout,
    "thankyou": _render_thankyou,
    "thank-you": _render_thankyou,
    "thanks": _render_thankyou,
    "index": _render_index,
    "home": _render_index,
    "features": _render_features,
    "pricing": _render_pricing,
    "about": _render_about,
    "blog": _render_blog,
}


def needs_build_step(content: Any) -> bool:
    if not isinstance(content, dict):
        return False
    return bool(content.get("componentCode")) and not content.get("htmlPreview")


def _render(page_type: Optional[str], content: Any) -> Optional[str]:
    if not isinstance(content, dict) or needs_build_step(content):
        return None
    renderer = _RENDERERS.get((page_type or "").strip().lower())
    if renderer is None:
        if not isinstance(content.get("hero"), dict):
            return None
        renderer = _render_generic
    title, body = renderer(content)
    return _document(title=title, body=body, primary=_color(content))


def render_page(page_type: Optional[str], content: Any) -> Optional[str]:
    try:
        return _render(page_type, content)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "content_renderer.render_failed",
            extra={"page_type": page_type, "error": f"{type(exc).__name__}: {exc}"},
        )
        return None


def render_placeholder(step_label: str, page_type: str, *, linked: bool) -> str:
    if linked:
        message = "A page is linked to this step but it has no preview yet."
    else:
        message = "No page is linked to this step yet."
    body = (
        '<div class="placeholder">'
        f'<p class="muted">{_text(page_type, "custom")}</p>'
        f"<h1>{_text(step_label, 'Untitled step')}</h1>"
        f"<p>{message}</p>"
        "</div>"
    )
    return _document(title=_text(step_label, "Preview"), body=body, primary=settings.PREVIEW_PRIMARY_COLOR)
