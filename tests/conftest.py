"""Shared fixtures for sanctifier tests.

Contract sources are kept here so that detector, engine and CLI tests
agree on the exact line numbers they assert against.
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from sanctifier.parsers import SyntaxTree, parse_source


# Line numbers matter: mint's unwrap is on line 13, the addition on line 14,
# the instance set on line 18 and panic! on line 20.
VULNERABLE_TOKEN = textwrap.dedent("""\
    #![no_std]
    use soroban_sdk::{contract, contractimpl, symbol_short, Address, Env, Symbol};

    const BALANCE: Symbol = symbol_short!("balance");
    const TOTAL: Symbol = symbol_short!("balance");

    #[contract]
    pub struct Token;

    #[contractimpl]
    impl Token {
        pub fn mint(env: Env, to: Address, amount: u64) {
            let current: u64 = env.storage().persistent().get(&to).unwrap();
            env.storage().persistent().set(&to, &(current + amount));
        }

        pub fn burn(env: Env, amount: u64) {
            env.storage().instance().set(&TOTAL, &amount);
            if amount == 0 {
                panic!("zero amount");
            }
        }
    }
""")

CLEAN_VAULT = textwrap.dedent("""\
    #![no_std]
    use soroban_sdk::{contract, contractimpl, contracttype, Address, Env};

    #[contracttype]
    pub enum DataKey {
        Admin,
        Balance(Address),
    }

    #[contract]
    pub struct Vault;

    #[contractimpl]
    impl Vault {
        pub fn init(env: Env, admin: Address) {
            admin.require_auth();
            env.storage().persistent().set(&DataKey::Admin, &admin);
        }

        pub fn balance(env: Env, user: Address) -> i128 {
            env.storage().persistent().get(&DataKey::Balance(user)).unwrap_or(0)
        }
    }
""")

# The typed-client call is on line 11, invoke_contract on line 12.
ROUTER = textwrap.dedent("""\
    #![no_std]
    use soroban_sdk::{contract, contractimpl, symbol_short, vec, Address, Env, IntoVal};

    #[contract]
    pub struct Router;

    #[contractimpl]
    impl Router {
        pub fn route(env: Env, pool: Address, amount: i128) {
            let token = TokenClient::new(&env, &pool);
            token.transfer(&env.current_contract_address(), &pool, &amount);
            env.invoke_contract::<()>(&pool, &symbol_short!("swap"), vec![&env, amount.into_val(&env)]);
            env.storage().instance().set(&symbol_short!("last"), &amount);
        }
    }
""")

UNPARSEABLE = "pub fn broken( {\n    unsafe { call() }\n"


def parse(source: str) -> SyntaxTree:
    """Parse ``source`` and fail the test if it does not parse."""
    tree = parse_source(textwrap.dedent(source))
    assert tree is not None, "fixture source failed to parse"
    return tree


@pytest.fixture
def vulnerable_source() -> str:
    return VULNERABLE_TOKEN


@pytest.fixture
def clean_source() -> str:
    return CLEAN_VAULT


@pytest.fixture
def router_source() -> str:
    return ROUTER


@pytest.fixture
def parse_rust():
    """Return a helper that dedents and parses Rust source."""
    return parse


@pytest.fixture
def contract_dir(tmp_path: Path) -> Path:
    """A project with one vulnerable and one clean contract."""
    root = tmp_path / "project"
    (root / "contracts" / "token" / "src").mkdir(parents=True)
    (root / "contracts" / "vault" / "src").mkdir(parents=True)
    (root / "contracts" / "token" / "src" / "lib.rs").write_text(VULNERABLE_TOKEN)
    (root / "contracts" / "vault" / "src" / "lib.rs").write_text(CLEAN_VAULT)
    return root


@pytest.fixture
def clean_dir(tmp_path: Path) -> Path:
    """A project holding only the clean vault contract."""
    root = tmp_path / "clean"
    (root / "src").mkdir(parents=True)
    (root / "src" / "lib.rs").write_text(CLEAN_VAULT)
    return root


@pytest.fixture
def empty_dir(tmp_path: Path) -> Path:
    root = tmp_path / "empty"
    root.mkdir()
    (root / "README.md").write_text("no contracts here\n")
    return root
