"""Dockerfile templates for the supported project runtimes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from sandbox_orchestrator.domain.runtime import RuntimeTag

logger = logging.getLogger("sandbox_orchestrator.descriptor")

DESCRIPTOR_FILENAME: Final[str] = "Dockerfile"

_SPRING_DOCKERFILE = """\
FROM eclipse-temurin:17-jdk

RUN apt-get update && apt-get install -y --no-install-recommends wget unzip && \\
    wget -q https://services.gradle.org/distributions/gradle-8.5-bin.zip && \\
    unzip -q gradle-8.5-bin.zip && \\
    mv gradle-8.5 /opt/gradle && \\
    rm gradle-8.5-bin.zip && \\
    apt-get clean && \\
    rm -rf /var/lib/apt/lists/*

ENV GRADLE_HOME=/opt/gradle
ENV PATH=$GRADLE_HOME/bin:$PATH

WORKDIR /app
COPY . .

RUN if [ -f gradlew ]; then \\
        chmod +x gradlew && ./gradlew build --no-daemon -x test; \\
    elif [ -f build.gradle ] || [ -f build.gradle.kts ]; then \\
        gradle build --no-daemon -x test; \\
    elif [ -f pom.xml ]; then \\
        apt-get update && apt-get install -y --no-install-recommends maven && \\
        mvn clean package -DskipTests; \\
    else \\
        echo "No build file found" && exit 1; \\
    fi

RUN JAR_FILE=$(find . \\( -path "*/build/libs/*.jar" -o -path "*/target/*.jar" \\) ! -name "*-plain.jar" | head -n 1) && \\
    if [ -n "$JAR_FILE" ]; then \\
        echo "Found JAR file: $JAR_FILE" && \\
        cp "$JAR_FILE" app.jar; \\
    else \\
        echo "No JAR file found. Available files:" && \\
        find . -name "*.jar" && \\
        exit 1; \\
    fi

EXPOSE 8080
CMD ["java", "-jar", "app.jar"]
"""

_REACT_DOCKERFILE = """\
FROM node:20-slim AS builder
WORKDIR /app

COPY package*.json ./

RUN npm config set engine-strict false && \\
    npm config set fund false && \\
    npm config set audit false

RUN npm ci --no-audit --no-fund || \\
    npm install --legacy-peer-deps --no-audit --no-fund

COPY . .

RUN npm run build

RUN if [ -d build ] && [ ! -d dist ]; then mv build dist; fi && \\
    test -d dist || (echo "No build output (dist/ or build/) found" && ls -la && exit 1)

FROM node:20-slim
WORKDIR /app

RUN apt-get update && \\
    apt-get install -y --no-install-recommends curl && \\
    rm -rf /var/lib/apt/lists/*

RUN npm install -g serve@14.2.3

COPY --from=builder /app/dist ./dist
COPY --from=builder /app/package.json ./package.json

EXPOSE 3000

HEALTHCHECK --interval=30s --timeout=10s --start-period=10s --retries=3 \\
    CMD curl -f http://localhost:3000 || exit 1

CMD ["serve", "-s", "dist", "-l", "3000", "-n"]
"""

_FASTAPI_DOCKERFILE = """\
FROM python:3.11-slim

RUN apt-get update && \\
    apt-get install -y --no-install-recommends curl && \\
    rm -rf /var/lib/apt/lists/*

WORKDIR /app

COPY . .

RUN pip install --no-cache-dir --upgrade pip && \\
    if [ -f requirements.txt ]; then \\
        pip install --no-cache-dir -r requirements.txt; \\
    else \\
        echo "Installing default FastAPI packages..." && \\
        pip install --no-cache-dir fastapi uvicorn; \\
    fi

RUN if [ ! -f main.py ]; then \\
        echo "ERROR: main.py not found!" && \\
        echo "Available files:" && ls -la && \\
        exit 1; \\
    fi

EXPOSE 8000
CMD ["uvicorn", "main:app", "--host", "0.0.0.0", "--port", "8000"]
"""

_TEMPLATES: dict[RuntimeTag, str] = {
    RuntimeTag.SPRING: _SPRING_DOCKERFILE,
    RuntimeTag.REACT: _REACT_DOCKERFILE,
    RuntimeTag.FASTAPI: _FASTAPI_DOCKERFILE,
}


def render_descriptor(runtime: RuntimeTag | str) -> str:
    return _TEMPLATES[RuntimeTag.parse(runtime)]


def generate_descriptor(dest_dir: Path, runtime: RuntimeTag | str) -> Path:
    """Write the Dockerfile for ``runtime`` into ``dest_dir`` and return its path."""

    tag = RuntimeTag.parse(runtime)
    path = dest_dir / DESCRIPTOR_FILENAME
    path.write_text(_TEMPLATES[tag], encoding="utf-8")
    logger.debug("wrote build descriptor", extra={"data": {"path": str(path), "runtime": tag.value}})
    return path


__all__ = ["DESCRIPTOR_FILENAME", "generate_descriptor", "render_descriptor"]
