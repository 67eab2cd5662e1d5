from .instructions import (
    AppendText,
    EmitValue,
    Branch,
    Iterate,
    IncludeCall,
    Instruction,
    RenderProcedure,
    ResolvedFilter,
)
from .compiler import (
    TemplateCompiler,
    CompileOutput,
    compile_template,
    collect_expression_issues,
)

__all__ = [
    "AppendText",
    "EmitValue",
    "Branch",
    "Iterate",
    "IncludeCall",
    "Instruction",
    "RenderProcedure",
    "ResolvedFilter",
    "TemplateCompiler",
    "CompileOutput",
    "compile_template",
    "collect_expression_issues",
]
