"""Mobile-friendly CSS styles for the counter tablet."""
import streamlit as st


def apply_mobile_styles():
    """Apply responsive CSS: big touch targets at the counter, tidy metric cards."""
    st.markdown("""
    <style>
    /* Metric cards on the dashboard */
    div[data-testid="stMetric"] {
        background: #ffffff;
        border: 1px solid #e2e8f0;
        border-radius: 0.75rem;
        padding: 0.75rem 1rem;
    }

    /* Checkout total stands out */
    .pos-total {
        font-size: 1.6rem;
        font-weight: 700;
        color: #4338ca;
    }

    /* Locked sales are greyed in the history list */
    .tx-locked {
        color: #94a3b8;
    }

    @media (max-width: 768px) {
        /* Larger touch targets for buttons */
        .stButton button {
            min-height: 48px !important;
            font-size: 16px !important;
        }

        .block-container {
            padding-left: 1rem !important;
            padding-right: 1rem !important;
        }

        /* Form inputs - prevent zoom on iOS */
        input, select, textarea {
            font-size: 16px !important;
        }
    }
    </style>
    """, unsafe_allow_html=True)
