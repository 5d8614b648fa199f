"""Parameterised C++ shim templates, one per accessor/operation shape.

Every template renders inline free functions over a concrete class or
container alias. Conversions between C++ and bridge types are delegated
to the ``::bridge_detail`` helpers (``return_convert``, ``arg_convert``,
``assign_smart``), which the shim embeds from ``BRIDGE_DETAIL`` unless a
helper header is configured in their place.
"""

from enum import Enum
from string import Template


class Shape(Enum):
    VAL_GET = 'val_get'
    VAL_SET = 'val_set'
    OBJ_GET = 'obj_get'
    OBJ_GET_CONST = 'obj_get_const'
    OBJ_SET = 'obj_set'
    OPT_VAL_GET = 'opt_val_get'
    OPT_OBJ_GET = 'opt_obj_get'
    OPT_OBJ_GET_CONST = 'opt_obj_get_const'
    METHOD = 'method'
    METHOD_CONST = 'method_const'
    OP_CALL = 'op_call'
    OP_CALL_CONST = 'op_call_const'
    STATIC_METHOD = 'static_method'
    CTOR = 'ctor'
    ITER_CTX = 'iter_ctx'
    ITER_CTX_CONST = 'iter_ctx_const'
    ITER_OWNED_OBJ = 'iter_owned_obj'
    ITER_OWNED_VAL = 'iter_owned_val'
    ITER_REF = 'iter_ref'
    ITER_MUT = 'iter_mut'
    VEC_OPS = 'vec_ops'
    VEC_PTR_OPS = 'vec_ptr_ops'
    VEC_GET_MUT = 'vec_get_mut'
    VEC_SET = 'vec_set'
    VEC_SLICE = 'vec_slice'
    MAP_OPS = 'map_ops'
    MAP_ITER = 'map_iter'


# ── conversion helpers ────────────────────────────────────────

BRIDGE_DETAIL = '''\
namespace bridge_detail {

template <typename T> struct is_unique_ptr : std::false_type {};
template <typename T> struct is_unique_ptr<std::unique_ptr<T>> : std::true_type {};

template <typename T> struct is_optional : std::false_type {};
template <typename T> struct is_optional<std::optional<T>> : std::true_type {};

// classes and containers cross the bridge behind a reference or a unique_ptr
template <typename T>
struct is_object {
    using U = std::decay_t<T>;
    static constexpr bool value = std::is_class_v<U> && !std::is_same_v<U, std::string> &&
                                  !is_unique_ptr<U>::value && !is_optional<U>::value;
};

// strings are copied out
inline rust::String return_convert(const std::string &s) {
    return rust::String(s);
}

template <typename T>
inline std::enable_if_t<std::is_arithmetic_v<T> || std::is_enum_v<T>, T>
return_convert(const T &val) {
    return val;
}

template <typename T>
inline std::enable_if_t<is_object<T>::value, T &> return_convert(T &val) {
    return val;
}

template <typename T>
inline std::enable_if_t<is_object<T>::value, const T &> return_convert(const T &val) {
    return val;
}

// temporaries move to the heap
template <typename T>
inline std::enable_if_t<is_object<T>::value && !std::is_reference_v<T>, std::unique_ptr<T>>
return_convert(T &&val) {
    return std::make_unique<T>(std::move(val));
}

template <typename T>
inline T &return_convert(std::unique_ptr<T> &ptr) {
    if (!ptr)
        throw std::runtime_error("Smart pointer is null");
    return *ptr;
}

template <typename T>
inline const T &return_convert(const std::unique_ptr<T> &ptr) {
    if (!ptr)
        throw std::runtime_error("Smart pointer is null");
    return *ptr;
}

template <typename T>
inline std::unique_ptr<T> return_convert(std::unique_ptr<T> &&ptr) {
    return std::move(ptr);
}

template <typename T>
inline T &return_convert(T *ptr) {
    if (!ptr)
        throw std::runtime_error("Pointer is null");
    return *ptr;
}

template <typename T>
inline decltype(auto) return_convert(const std::optional<T> &opt) {
    if (!opt)
        throw std::runtime_error("Optional value is empty");
    return return_convert(*opt);
}

// an owned optional object becomes a nullable unique_ptr
template <typename T>
inline auto return_convert(std::optional<T> &&opt) {
    if constexpr (is_object<T>::value) {
        return opt ? std::make_unique<T>(std::move(*opt)) : std::unique_ptr<T>();
    } else {
        if (!opt)
            throw std::runtime_error("Optional value is empty");
        return return_convert(std::move(*opt));
    }
}

inline std::string arg_convert(rust::Str s) {
    return std::string(s);
}

inline std::string arg_convert(rust::String s) {
    return std::string(s);
}

template <typename T>
inline std::enable_if_t<std::is_arithmetic_v<std::remove_const_t<T>>,
                        std::vector<std::remove_const_t<T>>>
arg_convert(rust::Slice<T> slice) {
    return std::vector<std::remove_const_t<T>>(slice.begin(), slice.end());
}

template <typename T>
inline T arg_convert(std::unique_ptr<T> ptr) {
    if (!ptr)
        throw std::runtime_error("Argument is null");
    return std::move(*ptr);
}

template <typename T>
inline T &&arg_convert(T &&arg) {
    return std::forward<T>(arg);
}

template <typename L, typename R>
inline std::enable_if_t<is_unique_ptr<L>::value> assign_smart(L &lhs, R &&rhs) {
    lhs = std::forward<R>(rhs);
}

template <typename L, typename R>
inline std::enable_if_t<!is_unique_ptr<L>::value && is_unique_ptr<std::decay_t<R>>::value>
assign_smart(L &lhs, R &&rhs) {
    if (!rhs)
        throw std::runtime_error("Argument is null");
    lhs = std::move(*rhs);
}

template <typename L, typename R>
inline std::enable_if_t<!is_unique_ptr<L>::value && !is_unique_ptr<std::decay_t<R>>::value>
assign_smart(L &lhs, R &&rhs) {
    lhs = arg_convert(std::forward<R>(rhs));
}

} // namespace bridge_detail'''

# ── fields ────────────────────────────────────────────────────

_GETTER = '''\
inline auto ${get_fn}(${qual}${cls} &obj)
    -> decltype(::bridge_detail::return_convert(obj.${field})) {
    return ::bridge_detail::return_convert(obj.${field});
}'''

_OPT_GETTER = '''\
inline auto ${get_fn}(${qual}${cls} &obj)
    -> decltype(::bridge_detail::return_convert(*obj.${field})) {
    if (!obj.${field})
        throw std::runtime_error("${field} is nullopt");
    return ::bridge_detail::return_convert(*obj.${field});
}'''

_VAL_SET = '''\
template <typename T>
inline void ${set_fn}(${cls} &obj, T val) {
    obj.${field} = ::bridge_detail::arg_convert(std::move(val));
}'''

_OBJ_SET = '''\
template <typename T>
inline void ${set_fn}(${cls} &obj, T val) {
    ::bridge_detail::assign_smart(obj.${field}, std::move(val));
}'''

# ── methods ───────────────────────────────────────────────────

_METHOD = '''\
template <typename... Args>
inline decltype(auto) ${fn}(${qual}${cls} &obj, Args... args) {
    if constexpr (std::is_void_v<decltype(obj.${cpp_method}(
                      ::bridge_detail::arg_convert(std::forward<Args>(args))...))>) {
        obj.${cpp_method}(::bridge_detail::arg_convert(std::forward<Args>(args))...);
    } else {
        return ::bridge_detail::return_convert(
            obj.${cpp_method}(::bridge_detail::arg_convert(std::forward<Args>(args))...));
    }
}'''

_OP_CALL = '''\
template <typename... Args>
inline auto ${fn}(${qual}${cls} &obj, Args... args)
    -> decltype(obj(std::forward<Args>(args)...)) {
    return obj(std::forward<Args>(args)...);
}'''

_STATIC_METHOD = '''\
template <typename... Args>
inline decltype(auto) ${fn}(Args... args) {
    if constexpr (std::is_void_v<decltype(${cls}::${cpp_method}(
                      ::bridge_detail::arg_convert(std::forward<Args>(args))...))>) {
        ${cls}::${cpp_method}(::bridge_detail::arg_convert(std::forward<Args>(args))...);
    } else {
        return ::bridge_detail::return_convert(
            ${cls}::${cpp_method}(::bridge_detail::arg_convert(std::forward<Args>(args))...));
    }
}'''

_CTOR = '''\
template <typename... Args>
inline std::unique_ptr<${cls}> ${ctor_fn}(Args... args) {
    return std::make_unique<${cls}>(::bridge_detail::arg_convert(std::forward<Args>(args))...);
}'''

# ── iterators ─────────────────────────────────────────────────

_ITER_CTX = '''\
struct ${ctx} {
    using IterType = decltype(std::declval<${qual}${cls} &>().begin());
    IterType cur;
    IterType end;
    explicit ${ctx}(${qual}${cls} &obj) : cur(obj.begin()), end(obj.end()) {}
};
inline std::unique_ptr<${ctx}> ${new_fn}(${qual}${cls} &obj) {
    return std::make_unique<${ctx}>(obj);
}'''

_ITER_OWNED_OBJ = '''\
inline std::unique_ptr<${item}> ${next_fn}(${ctx} &ctx) {
    if (ctx.cur == ctx.end)
        return nullptr;
    auto ptr = std::make_unique<${item}>(*ctx.cur);
    ++ctx.cur;
    return ptr;
}'''

_ITER_OWNED_VAL = '''\
inline auto ${next_fn}(${ctx} &ctx)
    -> decltype(::bridge_detail::return_convert(*ctx.cur)) {
    if (ctx.cur == ctx.end)
        throw std::out_of_range("${ctx} exhausted");
    auto &item = *ctx.cur;
    ++ctx.cur;
    return ::bridge_detail::return_convert(item);
}'''

_ITER_BORROWED = '''\
inline ${qual}${item} &${next_fn}(${ctx} &ctx) {
    if (ctx.cur == ctx.end)
        throw std::out_of_range("${ctx} exhausted");
    ${qual}auto &item = *ctx.cur;
    ++ctx.cur;
    return ::bridge_detail::return_convert(item);
}'''

# ── containers ────────────────────────────────────────────────

_VEC_COMMON = '''\
inline size_t ${alias}_len(const ${alias} &self) {
    return self.size();
}
inline decltype(auto) ${alias}_get(const ${alias} &self, size_t index) {
    return ::bridge_detail::return_convert(self.at(index));
}
'''

_VEC_PUSH = '''\
template <typename Arg>
inline void ${alias}_push(${alias} &self, Arg val) {
    self.push_back(::bridge_detail::arg_convert(std::move(val)));
}'''

_VEC_PTR_PUSH = '''\
inline void ${alias}_push(${alias} &self, std::unique_ptr<${elem}> val) {
    self.push_back(std::move(val));
}'''

_VEC_GET_MUT = '''\
inline decltype(auto) ${alias}_get_mut(${alias} &self, size_t index) {
    return ::bridge_detail::return_convert(self.at(index));
}'''

_VEC_SET = '''\
template <typename Arg>
inline void ${alias}_set(${alias} &self, size_t index, Arg val) {
    self.at(index) = ::bridge_detail::arg_convert(std::move(val));
}'''

_VEC_SLICE = '''\
inline rust::Slice<const ${elem}> ${alias}_as_slice(const ${alias} &self) {
    return rust::Slice<const ${elem}>(self.data(), self.size());
}
inline rust::Slice<${elem}> ${alias}_as_mut_slice(${alias} &self) {
    return rust::Slice<${elem}>(self.data(), self.size());
}'''

_MAP_OPS = '''\
inline size_t ${alias}_len(const ${alias} &self) {
    return self.size();
}
template <typename Key>
inline decltype(auto) ${alias}_get(const ${alias} &self, Key key) {
    auto it = self.find(::bridge_detail::arg_convert(std::move(key)));
    if (it == self.end())
        throw std::out_of_range("Key not found");
    return ::bridge_detail::return_convert(it->second);
}'''

_MAP_ITER = '''\
struct ${alias}_IterCtx {
    ${alias}::const_iterator cur;
    ${alias}::const_iterator end;
    explicit ${alias}_IterCtx(const ${alias} &m) : cur(m.begin()), end(m.end()) {}
};
inline std::unique_ptr<${alias}_IterCtx> ${alias}_iter_new(const ${alias} &m) {
    return std::make_unique<${alias}_IterCtx>(m);
}
inline decltype(auto) ${alias}_iter_key(const ${alias}_IterCtx &ctx) {
    return ::bridge_detail::return_convert(ctx.cur->first);
}
inline decltype(auto) ${alias}_iter_val(const ${alias}_IterCtx &ctx) {
    return ::bridge_detail::return_convert(ctx.cur->second);
}
inline void ${alias}_iter_step(${alias}_IterCtx &ctx) {
    ++ctx.cur;
}
inline bool ${alias}_iter_is_end(const ${alias}_IterCtx &ctx) {
    return ctx.cur == ctx.end;
}'''


CONST = 'const '

# (template text, fixed substitutions)
TEMPLATES: dict[Shape, tuple[Template, dict[str, str]]] = {
    Shape.VAL_GET: (Template(_GETTER), {'qual': CONST}),
    Shape.VAL_SET: (Template(_VAL_SET), {}),
    Shape.OBJ_GET: (Template(_GETTER), {'qual': ''}),
    Shape.OBJ_GET_CONST: (Template(_GETTER), {'qual': CONST}),
    Shape.OBJ_SET: (Template(_OBJ_SET), {}),
    Shape.OPT_VAL_GET: (Template(_OPT_GETTER), {'qual': CONST}),
    Shape.OPT_OBJ_GET: (Template(_OPT_GETTER), {'qual': ''}),
    Shape.OPT_OBJ_GET_CONST: (Template(_OPT_GETTER), {'qual': CONST}),
    Shape.METHOD: (Template(_METHOD), {'qual': ''}),
    Shape.METHOD_CONST: (Template(_METHOD), {'qual': CONST}),
    Shape.OP_CALL: (Template(_OP_CALL), {'qual': ''}),
    Shape.OP_CALL_CONST: (Template(_OP_CALL), {'qual': CONST}),
    Shape.STATIC_METHOD: (Template(_STATIC_METHOD), {}),
    Shape.CTOR: (Template(_CTOR), {}),
    Shape.ITER_CTX: (Template(_ITER_CTX), {'qual': ''}),
    Shape.ITER_CTX_CONST: (Template(_ITER_CTX), {'qual': CONST}),
    Shape.ITER_OWNED_OBJ: (Template(_ITER_OWNED_OBJ), {}),
    Shape.ITER_OWNED_VAL: (Template(_ITER_OWNED_VAL), {}),
    Shape.ITER_REF: (Template(_ITER_BORROWED), {'qual': CONST}),
    Shape.ITER_MUT: (Template(_ITER_BORROWED), {'qual': ''}),
    Shape.VEC_OPS: (Template(_VEC_COMMON + _VEC_PUSH), {}),
    Shape.VEC_PTR_OPS: (Template(_VEC_COMMON + _VEC_PTR_PUSH), {}),
    Shape.VEC_GET_MUT: (Template(_VEC_GET_MUT), {}),
    Shape.VEC_SET: (Template(_VEC_SET), {}),
    Shape.VEC_SLICE: (Template(_VEC_SLICE), {}),
    Shape.MAP_OPS: (Template(_MAP_OPS), {}),
    Shape.MAP_ITER: (Template(_MAP_ITER), {}),
}


def render(shape: Shape, **params: str) -> str:
    """Instantiate the template for a shape; missing parameters raise KeyError"""
    template, fixed = TEMPLATES[shape]
    return template.substitute(fixed, **params)


def placeholders(shape: Shape) -> set[str]:
    """Parameters a caller has to supply for a shape"""
    template, fixed = TEMPLATES[shape]
    names = {m.group('braced') or m.group('named')
             for m in template.pattern.finditer(template.template)}
    names.discard(None)
    return names - set(fixed)
