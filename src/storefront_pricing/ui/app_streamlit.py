"""
Streamlit cart preview for the storefront pricing engine.

Features:
- Customer profile picker (B2C categories, verified / unverified B2B)
- Cart builder over the CSV catalog
- Coupon entry with re-validation on every change
- Pricing breakdown, savings and per-line trace
"""
import streamlit as st
import pandas as pd
import sys
from pathlib import Path
from datetime import datetime

# Add src to path for imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from storefront_pricing.engine import CartLine, PricingEngine
from storefront_pricing.config.settings import get_settings
from storefront_pricing.policy.customer_resolver import resolve_customer_context


st.set_page_config(
    page_title="Storefront Cart Preview",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_engine():
    """Get cached engine instance."""
    return PricingEngine.from_data_dir()


@st.cache_resource
def get_settings_cached():
    """Get cached settings."""
    return get_settings()


try:
    engine = get_engine()
    settings = get_settings_cached()
except Exception as e:
    st.error(f"System Error: {e}")
    st.stop()

currency = settings.currency_symbol

PROFILES = {
    "Guest": None,
    "Normal customer": {"customer_type": "B2C", "customer_category": "Normal"},
    "Standard customer": {"customer_type": "B2C", "customer_category": "Standard"},
    "Premium customer": {"customer_type": "B2C", "customer_category": "Premium"},
    "B2B Bronze (verified)": {"customer_type": "B2B", "gst_verified": True, "b2b_category": "Bronze"},
    "B2B Silver (verified)": {"customer_type": "B2B", "gst_verified": True, "b2b_category": "Silver"},
    "B2B Gold (verified)": {"customer_type": "B2B", "gst_verified": True, "b2b_category": "Gold"},
    "B2B Gold (unverified)": {"customer_type": "B2B", "gst_verified": False, "b2b_category": "Gold"},
}

# ============================================================================
# SIDEBAR: Customer Context
# ============================================================================
with st.sidebar:
    st.header("👤 Customer Context")

    with st.container(border=True):
        profile_name = st.selectbox("Profile", options=list(PROFILES), index=3)
        context = resolve_customer_context(PROFILES[profile_name])
        st.markdown(f"**Pricing as:** {context.customer_type} / {context.pricing_tier}")

    st.divider()

    counts = engine.catalog.counts()
    st.success(f"🔧 **{counts['products']} Products, {counts['coupons']} Coupons, {counts['auto_offers']} Offers**")
    if engine.catalog.load_errors:
        with st.expander(f"⚠️ {len(engine.catalog.load_errors)} skipped records"):
            for error in engine.catalog.load_errors:
                st.caption(error)

    if st.button("🔄 Reload Catalog"):
        engine.reload_data()
        st.rerun()


st.title("Storefront Cart Preview")
st.caption(f"v1.0 | GST {settings.gst_rate:.0%} | {datetime.now().strftime('%Y-%m-%d')}")

if 'cart' not in st.session_state:
    st.session_state.cart = {}
if 'coupon' not in st.session_state:
    st.session_state.coupon = None

col1, col2 = st.columns([1.6, 1.4], gap="large")

with col1:
    st.subheader("Add Items")

    with st.container(border=True):
        labels = [f"{p.id} | {p.name} | {currency}{p.price:,.2f}" for p in engine.catalog.products]
        selected_option = st.selectbox("Product", options=labels, label_visibility="collapsed")
        selected_id = selected_option.split(" | ")[0] if selected_option else None

        c1, c2 = st.columns([1, 4])
        with c1:
            quantity = st.number_input("Qty", min_value=1, value=1, step=1)
        with c2:
            st.write("")
            st.write("")
            if st.button("➕ Add to Cart", type="primary") and selected_id:
                st.session_state.cart[selected_id] = st.session_state.cart.get(selected_id, 0) + int(quantity)
                st.rerun()

    if st.session_state.cart:
        st.markdown("### 📝 Cart")
        cart_df = pd.DataFrame([
            {"Product": product_id, "Quantity": qty}
            for product_id, qty in st.session_state.cart.items()
        ])
        edited_df = st.data_editor(
            cart_df,
            use_container_width=True,
            column_config={
                "Product": st.column_config.TextColumn("Product", disabled=True),
                "Quantity": st.column_config.NumberColumn("Quantity", min_value=0, step=1),
            },
            hide_index=True,
            key="cart_editor",
        )
        if st.button("💾 Update Quantities"):
            st.session_state.cart = {
                row['Product']: int(row['Quantity']) for _, row in edited_df.iterrows() if row['Quantity'] > 0
            }
            st.rerun()

with col2:
    st.subheader("Order Summary")

    with st.container(border=True):
        if not st.session_state.cart:
            st.info("🛒 Cart is empty")
        else:
            lines = [
                CartLine(product=engine.catalog.get_product(product_id), quantity=qty)
                for product_id, qty in st.session_state.cart.items()
                if engine.catalog.get_product(product_id) is not None
            ]
            result = engine.compute_cart_pricing(lines, context, st.session_state.coupon)

            # Re-validation may have cleared the coupon
            if st.session_state.coupon and result.applied_coupon is None:
                st.session_state.coupon = None
            for notice in result.notices:
                st.warning(notice)

            m1, m2 = st.columns(2)
            m1.metric("Total", f"{currency}{result.final_total:,.2f}")
            m2.metric("Items", sum(line.quantity for line in result.lines))

            st.divider()
            st.markdown(f"Subtotal: **{currency}{result.subtotal:,.2f}**")
            if result.auto_offer:
                st.markdown(f"Offer ({result.auto_offer.title}): :green[-{currency}{result.auto_offer_discount:,.2f}]")
            if result.applied_coupon:
                st.markdown(f"Coupon {result.applied_coupon.code}: :green[-{currency}{result.coupon_discount:,.2f}]")
            st.markdown(f"GST: {currency}{result.gst_amount:,.2f}")
            if result.savings > 0:
                st.markdown(f":green[**You Save: {currency}{result.savings:,.2f}**]")

            for warning in result.warnings:
                st.caption(f"⚠️ {warning}")

            st.divider()
            code = st.text_input("Coupon code", value=st.session_state.coupon or "")
            b1, b2 = st.columns(2)
            with b1:
                if st.button("Apply", use_container_width=True) and code.strip():
                    st.session_state.coupon = code.strip().upper()
                    st.rerun()
            with b2:
                if st.button("🗑️ Clear Cart", use_container_width=True):
                    st.session_state.cart = {}
                    st.session_state.coupon = None
                    st.rerun()

            if result.available_coupons:
                st.caption("Available: " + ", ".join(c.code for c in result.available_coupons))

            with st.expander("🔍 Pricing Trace"):
                st.text(result.get_trace_text())
                for item in result.lines:
                    st.markdown(f"**{item.product.id}** ({item.source})")
                    st.text(item.get_trace_text())
