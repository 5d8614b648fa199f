# tests/conftest.py
"""
Shared fixtures: bind! bodies and a helper that runs them through the pipeline.
"""

import pytest

from cxxbind import parse_bind, preprocess


CONFIG_DSL = '''
    include!("test.hh");
    struct Config {
        id: i32,
        value: f32,
        name: String,
    }
    impl Config {
        fn new() -> Self;
    }
'''

SCHOOL_DSL = '''
    include!("test.hh");
    struct Config {
        id: i32,
        value: f32,
        name: String,
    }

    struct Manager {
        config: Config,
    }

    struct Methods {
        #[readonly]
        id: i32,
        #[readonly]
        config: Config,
    }

    impl Methods {
        fn get_id(&self) -> i32;
        fn set_id(&mut self, v: i32);
        fn get_config(&self) -> &Config;
        fn pick(&self, key: String) -> &Config;
        fn add(v: i32, w: i32) -> i32;
        fn create_config(&self) -> Config;
        fn optional_id(&self, flag: bool) -> Option<i32>;
    }

    struct ConfigContainer {
        data: Vec<Config>,
        ids: Vec<i32>,
    }

    impl ConfigContainer {
        fn fill(&mut self, v: &mut Vec<Config>);
        #[iter(Item = &Config)]
        fn items(&self);
        #[iter(Item = Config)]
        fn drain(&mut self);
        #[iter(Item = i32)]
        fn ids_iter(&self);
    }

    struct Chance {
        probability: Option<i32>,
    }

    struct Wallet {
        #[readonly]
        config: Option<Config>,
    }

    struct Lookup {
        int_names: Map<i32, String>,
        by_name: Map<String, Config>,
    }
'''

EXPOSER_DSL = '''
    struct Counter {
        #[protected]
        count: i32,
        total: i64,
    }
    impl Counter {
        #[protected]
        fn bump(&mut self) -> i32;
    }
'''


@pytest.fixture
def build():
    """Parse and preprocess a bind! body"""
    def _build(dsl):
        return preprocess(parse_bind(dsl))
    return _build


@pytest.fixture
def config_ctx(build):
    return build(CONFIG_DSL)


@pytest.fixture
def school_ctx(build):
    return build(SCHOOL_DSL)


@pytest.fixture
def exposer_ctx(build):
    return build(EXPOSER_DSL)
