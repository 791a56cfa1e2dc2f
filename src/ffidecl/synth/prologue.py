from __future__ import annotations


HEADER = """// NOTE: This file is auto-generated.
using System;
using System.Runtime.InteropServices;
using System.Runtime.InteropServices.Marshalling;
using System.Runtime.CompilerServices;
using System.Text;
"""

SUPPORT_TEMPLATE = """
// Marshaller for strings owned by the native library; never freed.
[CustomMarshaller(typeof(string), MarshalMode.ManagedToUnmanagedOut, typeof(LibraryOwnedStringMarshaller))]
public static unsafe class LibraryOwnedStringMarshaller
{{
    public static string ConvertToManaged(byte* unmanaged)
        => Marshal.PtrToStringUTF8((IntPtr)unmanaged);
}}

// Marshaller for strings the caller must release.
[CustomMarshaller(typeof(string), MarshalMode.ManagedToUnmanagedOut, typeof(CallerOwnedStringMarshaller))]
public static unsafe class CallerOwnedStringMarshaller
{{
    public static string ConvertToManaged(byte* unmanaged)
        => Marshal.PtrToStringUTF8((IntPtr)unmanaged);

    public static void Free(byte* unmanaged)
        => {free_function}((IntPtr)unmanaged);
}}

// C# bool is not blittable; one byte, zero is false.
public readonly record struct NativeBool
{{
    private readonly byte value;

    internal const byte FALSE_VALUE = 0;
    internal const byte TRUE_VALUE = 1;

    internal NativeBool(byte value)
    {{
        this.value = value;
    }}

    public static implicit operator bool(NativeBool b)
    {{
        return b.value != FALSE_VALUE;
    }}

    public static implicit operator NativeBool(bool b)
    {{
        return new NativeBool(b ? TRUE_VALUE : FALSE_VALUE);
    }}

    public bool Equals(NativeBool other)
    {{
        return (bool)other == (bool)this;
    }}

    public override int GetHashCode()
    {{
        return ((bool)this).GetHashCode();
    }}
}}
"""


def render_bindings(
    definitions: str,
    namespace: str,
    class_name: str,
    include_support: bool = True,
    free_function: str = "free",
) -> str:
    parts = [HEADER, f"namespace {namespace};\n", f"public static unsafe partial class {class_name}\n{{"]
    if include_support:
        parts.append(SUPPORT_TEMPLATE.format(free_function=free_function))
    parts.append(definitions.rstrip("\n"))
    parts.append("}\n")
    return "\n".join(parts)
