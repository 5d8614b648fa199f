"""Common Generator - generates the handle module shared by all wrappers"""

from .type_mapper import HANDLE


class CommonGenerator:
    """Generates the `handle` module every generated wrapper is built on.

    The module defines the handle family `CppObject<'a, T, M, S>`:
    `T` is a per-class tag, `M` the access mode (`Const`/`Mut`) and `S`
    the storage (`Ref` borrows a C++ object, `Owned` holds a UniquePtr).
    """

    def generate_handle_module(self) -> str:
        lines = [
            f"pub mod {HANDLE} {{",
            "    use cxx::memory::UniquePtrTarget;",
            "    use cxx::UniquePtr;",
            "    use std::marker::PhantomData;",
            "",
        ]
        for section in (
            self._modes(),
            self._storage(),
            self._aliases(),
            self._object(),
            self._container_tags(),
        ):
            lines.extend(f"    {line}" if line else "" for line in section)
            lines.append("")
        lines[-1] = "}"
        return "\n".join(lines)

    @staticmethod
    def _modes() -> list[str]:
        return [
            "pub trait Mode {}",
            "",
            "#[derive(Clone, Copy, Debug)]",
            "pub struct Const;",
            "#[derive(Clone, Copy, Debug)]",
            "pub struct Mut;",
            "",
            "impl Mode for Const {}",
            "impl Mode for Mut {}",
            "",
            "pub trait CppClass {",
            "    type FfiType;",
            "}",
        ]

    @staticmethod
    def _storage() -> list[str]:
        return [
            "pub trait Storage<T: CppClass> {",
            "    type Inner;",
            "    fn as_ptr(inner: &Self::Inner) -> *mut T::FfiType;",
            "}",
            "",
            "pub struct Ref;",
            "pub struct Owned;",
            "",
            "impl<T: CppClass> Storage<T> for Ref {",
            "    type Inner = *mut T::FfiType;",
            "    fn as_ptr(inner: &Self::Inner) -> *mut T::FfiType {",
            "        *inner",
            "    }",
            "}",
            "",
            "impl<T: CppClass> Storage<T> for Owned",
            "where",
            "    T::FfiType: UniquePtrTarget,",
            "{",
            "    type Inner = UniquePtr<T::FfiType>;",
            "    fn as_ptr(inner: &Self::Inner) -> *mut T::FfiType {",
            '        inner.as_ref().expect("owned handle is null") as *const T::FfiType as *mut T::FfiType',
            "    }",
            "}",
        ]

    @staticmethod
    def _aliases() -> list[str]:
        return [
            "pub trait CppTypeAliases: CppClass + Sized {",
            "    type Owned;",
            "    type Ref<'a>;",
            "    type Mut<'a>;",
            "}",
            "",
            "pub type CppOwned<T> = CppObject<'static, T, Mut, Owned>;",
            "pub type CppRef<'a, T> = CppObject<'a, T, Const, Ref>;",
            "pub type CppMut<'a, T> = CppObject<'a, T, Mut, Ref>;",
        ]

    @staticmethod
    def _object() -> list[str]:
        return [
            "#[repr(transparent)]",
            "pub struct CppObject<'a, T: CppClass, M: Mode, S: Storage<T>> {",
            "    pub inner: S::Inner,",
            "    _marker: PhantomData<(&'a (), T, M)>,",
            "}",
            "",
            "impl<'a, T: CppClass> Clone for CppObject<'a, T, Const, Ref> {",
            "    fn clone(&self) -> Self {",
            "        *self",
            "    }",
            "}",
            "",
            "impl<'a, T: CppClass> Copy for CppObject<'a, T, Const, Ref> {}",
            "",
            "impl<'a, T: CppClass, M: Mode, S: Storage<T>> CppObject<'a, T, M, S> {",
            "    pub fn as_ptr(&self) -> *mut T::FfiType {",
            "        S::as_ptr(&self.inner)",
            "    }",
            "",
            "    pub fn as_ref(&self) -> CppObject<'_, T, Const, Ref> {",
            "        CppObject { inner: self.as_ptr(), _marker: PhantomData }",
            "    }",
            "}",
            "",
            "impl<'a, T: CppClass, S: Storage<T>> CppObject<'a, T, Mut, S> {",
            "    pub fn as_mut(&mut self) -> CppObject<'_, T, Mut, Ref> {",
            "        CppObject { inner: self.as_ptr(), _marker: PhantomData }",
            "    }",
            "}",
            "",
            "impl<'a, T: CppClass, M: Mode> CppObject<'a, T, M, Ref> {",
            "    /// # Safety",
            "    ///",
            "    /// `ptr` must point to a live object that outlives `'a`.",
            "    pub unsafe fn from_ptr(ptr: *mut T::FfiType) -> Self {",
            "        CppObject { inner: ptr, _marker: PhantomData }",
            "    }",
            "}",
            "",
            "impl<T: CppClass> CppObject<'static, T, Mut, Owned>",
            "where",
            "    T::FfiType: UniquePtrTarget,",
            "{",
            "    pub fn from_unique(ptr: UniquePtr<T::FfiType>) -> Self {",
            "        CppObject { inner: ptr, _marker: PhantomData }",
            "    }",
            "",
            "    pub fn into_unique(self) -> UniquePtr<T::FfiType> {",
            "        self.inner",
            "    }",
            "}",
            "",
            "impl<'a, T: CppClass, M: Mode, S: Storage<T>> std::fmt::Debug for CppObject<'a, T, M, S> {",
            "    fn fmt(&self, f: &mut std::fmt::Formatter<'_>) -> std::fmt::Result {",
            '        write!(f, "CppObject({:p})", self.as_ptr())',
            "    }",
            "}",
            "",
            "impl<'a, T: CppClass, M: Mode, S: Storage<T>> PartialEq for CppObject<'a, T, M, S> {",
            "    fn eq(&self, other: &Self) -> bool {",
            "        std::ptr::eq(self.as_ptr(), other.as_ptr())",
            "    }",
            "}",
        ]

    @staticmethod
    def _container_tags() -> list[str]:
        return [
            "pub struct CppVector<T>(PhantomData<T>);",
            "pub struct CppVectorPtr<T>(PhantomData<T>);",
            "pub struct CppMap<K, V>(PhantomData<(K, V)>);",
            "pub struct CppMapPtr<K, V>(PhantomData<(K, V)>);",
        ]
