import logging

import requests
import streamlit as st

from zkpauth.auth.errors import ZKPAuthError
from zkpauth.client.zkp_client import ZKPClient
from zkpauth.config import get_settings
from zkpauth.crypto.zkp import secret_from_password

logging.basicConfig(level=logging.INFO)

# API endpoint
API_URL = get_settings().api_url


def get_server_status():
    """Get current server status"""
    response = requests.get(f"{API_URL}/status")
    return response.json()


def make_client(username: str, password: str) -> ZKPClient:
    """Build a client whose secret is derived from the password"""
    client = ZKPClient(username, 0, api_url=API_URL)
    params = client.fetch_parameters()
    client.secret = secret_from_password(password, params.q)
    return client


# Streamlit UI
st.title("ZKP Authentication")

page = st.sidebar.selectbox(
    "Navigation",
    ["Register", "Login"]
)

try:
    status = get_server_status()
except requests.RequestException:
    status = {"initialized": False}

if page == "Register":
    st.header("Register")

    if status["initialized"]:
        with st.form("register"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")

            if st.form_submit_button("Register"):
                if username and password:
                    try:
                        make_client(username, password).register()
                        st.success(f"Registered {username}")
                    except ZKPAuthError as e:
                        st.error(f"Registration failed: {e}")
                    except requests.RequestException as e:
                        st.error(f"Could not reach server: {e}")
                else:
                    st.error("Please fill in all fields")
    else:
        st.info("Server is not initialized")

elif page == "Login":
    st.header("Login")

    if status["initialized"]:
        with st.form("login"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")

            if st.form_submit_button("Prove"):
                if username and password:
                    try:
                        session = make_client(username, password).prove()
                        if session:
                            st.success("Authentication successful")
                            st.code(session)
                        else:
                            st.error("Authentication failed")
                    except ZKPAuthError as e:
                        st.error(f"Error during proof: {e}")
                    except requests.RequestException as e:
                        st.error(f"Could not reach server: {e}")
                else:
                    st.error("Please fill in all fields")
    else:
        st.info("Server is not initialized")

# Display current server status
st.sidebar.header("Server Status")
st.sidebar.write(f"Initialized: {status['initialized']}")
if status["initialized"]:
    st.sidebar.write(f"Group size: {status['bit_length']} bits")
    st.sidebar.write(f"Parameter version: {status['parameter_version']}")
    st.sidebar.write(f"Registered users: {status['registered_users']}")
    st.sidebar.write(f"Active sessions: {status['active_sessions']}")
