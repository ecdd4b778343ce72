from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class TemplateError(RuntimeError):
    pass


@dataclass(frozen=True)
class PackageTemplate:
    key: str
    name: str
    description: str
    package_json: dict[str, Any]
    tsconfig: dict[str, Any]
    files: dict[str, str] = field(default_factory=dict)
    dependencies: tuple[str, ...] = ()
    dev_dependencies: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return f"{self.name} ({self.key})"


_BASE_COMPILER_OPTIONS: dict[str, Any] = {
    "esModuleInterop": True,
    "skipLibCheck": True,
    "target": "es2022",
    "allowJs": True,
    "resolveJsonModule": True,
    "moduleDetection": "force",
    "isolatedModules": True,
    "verbatimModuleSyntax": True,
    "strict": True,
    "noUncheckedIndexedAccess": True,
    "noImplicitOverride": True,
}


def _tsconfig(*, aot: bool, jsx: bool = False, lib: list[str] | None = None, sources: tuple[str, ...]) -> dict[str, Any]:
    options = dict(_BASE_COMPILER_OPTIONS)
    if aot:
        options.update(
            {
                "module": "NodeNext",
                "outDir": "./dist",
                "rootDir": "./src",
                "declaration": True,
                "sourceMap": True,
            }
        )
    else:
        options.update({"module": "preserve", "noEmit": True, "lib": lib or ["es2022"]})
    if jsx:
        options["jsx"] = "react-jsx"
    return {
        "extends": "../../tsconfig.json",
        "compilerOptions": options,
        "include": list(sources),
        "exclude": ["node_modules", "dist"] if aot else ["node_modules"],
    }


_TS_SOURCES = ("src/**/*.ts", "src/**/*.tsx")

_BASIC_INDEX = """\
export function hello(name: string): string {
  return `Hello, ${name}!`;
}
"""

_REACT_INDEX = """\
export interface ButtonProps {
  label: string;
  onClick?: () => void;
}

export function Button({ label, onClick }: ButtonProps) {
  return (
    <button type="button" onClick={onClick}>
      {label}
    </button>
  );
}
"""

_API_INDEX = """\
import express from "express";
import cors from "cors";
import helmet from "helmet";

const app = express();
const port = Number(process.env.PORT ?? 3000);

app.use(helmet());
app.use(cors());
app.use(express.json());

app.get("/health", (_req, res) => {
  res.json({ status: "ok" });
});

app.listen(port, () => {
  console.log(`listening on :${port}`);
});
"""

_API_DEPENDENCIES = ("express", "cors", "helmet")
_API_DEV_DEPENDENCIES = ("typescript", "@types/node", "@types/express", "@types/cors", "supertest", "@types/supertest")

TEMPLATES: dict[str, PackageTemplate] = {
    t.key: t
    for t in (
        PackageTemplate(
            key="basic-jit",
            name="Basic TypeScript Package (JIT)",
            description="A simple TypeScript package with JIT compilation",
            package_json={
                "scripts": {
                    "dev": "tsx watch src/index.ts",
                    "start": "tsx src/index.ts",
                    "test": "jest",
                    "lint": "eslint .",
                    "typecheck": "tsc --noEmit",
                }
            },
            tsconfig=_tsconfig(aot=False, sources=_TS_SOURCES),
            files={"src/index.ts": _BASIC_INDEX},
            dev_dependencies=("typescript", "@types/node", "tsx"),
        ),
        PackageTemplate(
            key="basic-aot",
            name="Basic TypeScript Package (AOT)",
            description="A simple TypeScript package with AOT compilation",
            package_json={
                "scripts": {
                    "build": "tsc",
                    "dev": "tsc --watch",
                    "start": "node dist/index.js",
                    "test": "jest",
                    "lint": "eslint .",
                    "clean": "rm -rf dist",
                }
            },
            tsconfig=_tsconfig(aot=True, sources=_TS_SOURCES),
            files={"src/index.ts": _BASIC_INDEX},
            dev_dependencies=("typescript", "@types/node"),
        ),
        PackageTemplate(
            key="react-jit",
            name="React Component Library (JIT)",
            description="A React component library with JIT compilation",
            package_json={
                "scripts": {
                    "dev": "vite",
                    "test": "jest",
                    "lint": "eslint .",
                    "typecheck": "tsc --noEmit",
                    "storybook": "storybook dev -p 6006",
                    "build-storybook": "storybook build",
                }
            },
            tsconfig=_tsconfig(aot=False, jsx=True, lib=["es2022", "DOM", "DOM.Iterable"], sources=_TS_SOURCES),
            files={"src/index.tsx": _REACT_INDEX},
            dependencies=("react", "react-dom"),
            dev_dependencies=(
                "typescript",
                "@types/node",
                "@types/react",
                "@types/react-dom",
                "vite",
                "@vitejs/plugin-react",
                "@storybook/react-vite",
                "@storybook/addon-essentials",
                "@testing-library/react",
                "@testing-library/jest-dom",
            ),
        ),
        PackageTemplate(
            key="react-aot",
            name="React Component Library (AOT)",
            description="A React component library with AOT compilation",
            package_json={
                "scripts": {
                    "build": "tsup",
                    "dev": "tsup --watch",
                    "test": "jest",
                    "lint": "eslint .",
                    "storybook": "storybook dev -p 6006",
                    "build-storybook": "storybook build",
                }
            },
            tsconfig=_tsconfig(aot=True, jsx=True, sources=_TS_SOURCES),
            files={"src/index.tsx": _REACT_INDEX},
            dependencies=("react", "react-dom"),
            dev_dependencies=(
                "typescript",
                "@types/node",
                "@types/react",
                "@types/react-dom",
                "tsup",
                "@storybook/react",
                "@storybook/builder-webpack5",
                "@testing-library/react",
                "@testing-library/jest-dom",
            ),
        ),
        PackageTemplate(
            key="node-api-jit",
            name="Node.js API Package (JIT)",
            description="A Node.js API package with JIT compilation",
            package_json={
                "scripts": {
                    "dev": "tsx watch src/index.ts",
                    "start": "tsx src/index.ts",
                    "test": "jest",
                    "lint": "eslint .",
                    "typecheck": "tsc --noEmit",
                },
                "type": "module",
            },
            tsconfig=_tsconfig(aot=False, sources=("src/**/*.ts",)),
            files={"src/index.ts": _API_INDEX},
            dependencies=_API_DEPENDENCIES,
            dev_dependencies=(*_API_DEV_DEPENDENCIES, "tsx"),
        ),
        PackageTemplate(
            key="node-api-aot",
            name="Node.js API Package (AOT)",
            description="A Node.js API package with AOT compilation",
            package_json={
                "scripts": {
                    "build": "tsc",
                    "dev": "ts-node-dev --respawn src/index.ts",
                    "start": "node dist/index.js",
                    "test": "jest",
                    "lint": "eslint .",
                    "clean": "rm -rf dist",
                },
                "type": "module",
            },
            tsconfig=_tsconfig(aot=True, sources=("src/**/*.ts",)),
            files={"src/index.ts": _API_INDEX},
            dependencies=_API_DEPENDENCIES,
            dev_dependencies=(*_API_DEV_DEPENDENCIES, "ts-node-dev"),
        ),
    )
}

DEFAULT_TEMPLATE = "basic-aot"


def get_template(key: str) -> PackageTemplate:
    try:
        return TEMPLATES[key]
    except KeyError as e:
        available = ", ".join(sorted(TEMPLATES))
        raise TemplateError(f"Template not found: {key} (available: {available})") from e


def list_templates() -> list[PackageTemplate]:
    return list(TEMPLATES.values())
