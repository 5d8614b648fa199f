# tests/test_templates.py
"""
Tests for the native shim template table.
"""

import pytest

from cxxbind.templates import BRIDGE_DETAIL, TEMPLATES, Shape, placeholders, render


class TestTable:

    def test_every_shape_has_a_template(self):
        assert set(TEMPLATES) == set(Shape)

    @pytest.mark.parametrize("shape", list(Shape), ids=lambda s: s.value)
    def test_renders_without_leftovers(self, shape):
        params = {name: 'X' for name in placeholders(shape)}
        text = render(shape, **params)
        assert '$' not in text
        assert text.count('{') == text.count('}')

    def test_missing_parameter(self):
        with pytest.raises(KeyError):
            render(Shape.VAL_GET, cls='A')


class TestPlaceholders:

    def test_fixed_qualifier_not_required(self):
        assert placeholders(Shape.VAL_GET) == {'get_fn', 'cls', 'field'}

    def test_pointer_vector_needs_element(self):
        assert placeholders(Shape.VEC_PTR_OPS) == {'alias', 'elem'}
        assert placeholders(Shape.VEC_OPS) == {'alias'}

    def test_vector_element_access(self):
        assert placeholders(Shape.VEC_GET_MUT) == {'alias'}
        assert placeholders(Shape.VEC_SET) == {'alias'}
        assert placeholders(Shape.VEC_SLICE) == {'alias', 'elem'}

    def test_iterator_context(self):
        assert placeholders(Shape.ITER_CTX) == {'ctx', 'cls', 'new_fn'}


class TestRender:

    def test_const_getter(self):
        text = render(Shape.VAL_GET, get_fn='A_get_x', cls='A', field='x')
        assert text.startswith('inline auto A_get_x(const A &obj)')
        assert 'return ::bridge_detail::return_convert(obj.x);' in text

    def test_mutable_object_getter(self):
        text = render(Shape.OBJ_GET, get_fn='A_get_b', cls='A', field='b')
        assert text.startswith('inline auto A_get_b(A &obj)')

    def test_optional_getter_raises_on_empty(self):
        text = render(Shape.OPT_VAL_GET, get_fn='A_get_p', cls='A', field='p')
        assert 'throw std::runtime_error("p is nullopt");' in text

    def test_call_operator(self):
        text = render(Shape.OP_CALL_CONST, fn='A_method_call', cls='A', cpp_method='operator()')
        assert 'inline auto A_method_call(const A &obj, Args... args)' in text
        assert 'return obj(std::forward<Args>(args)...);' in text

    def test_borrowed_iterator_item(self):
        text = render(Shape.ITER_REF, next_fn='A_it_iter_next', ctx='A_it_IterCtx', item='B')
        assert text.startswith('inline const B &A_it_iter_next(A_it_IterCtx &ctx)')

    def test_owned_object_iterator_ends_with_null(self):
        text = render(Shape.ITER_OWNED_OBJ, next_fn='n', ctx='C', item='B')
        assert 'return nullptr;' in text


class TestBridgeDetail:

    def test_namespace(self):
        assert BRIDGE_DETAIL.startswith('namespace bridge_detail {')
        assert BRIDGE_DETAIL.rstrip().endswith('} // namespace bridge_detail')
        assert BRIDGE_DETAIL.count('{') == BRIDGE_DETAIL.count('}')

    @pytest.mark.parametrize("helper", ['return_convert', 'arg_convert', 'assign_smart'])
    def test_defines_helper(self, helper):
        assert f' {helper}(' in BRIDGE_DETAIL

    def test_string_conversions(self):
        assert 'inline rust::String return_convert(const std::string &s)' in BRIDGE_DETAIL
        assert 'inline std::string arg_convert(rust::Str s)' in BRIDGE_DETAIL

    def test_null_unique_ptr_throws(self):
        assert 'throw std::runtime_error' in BRIDGE_DETAIL
