# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Runs the extract, classify and synthesize stages in order.
"""
import logging
import os
from typing import List, Optional
from pydantic import BaseModel
from ..exceptions import D2KError
from ..MODELS.conversion_config import ConversionConfig
from ..MODELS.detected_pattern import DetectedPattern
from ..MODELS.manifest import ManifestSet
from ..MODELS.orchestration_config import ComposeModel
from ..PARSERS.compose_parser import ComposeParser
from ..ANALYZERS.analysis_report import AnalysisReport, analyze
from ..ANALYZERS.pattern_detector import PatternDetector
from ..ANALYZERS.service_classifier import ServiceClassifier
from ..CONVERTERS.to_kubernetes import KubernetesConverter

logger = logging.getLogger(__name__)


class ConversionResult(BaseModel):
    """
    Outcome of one run.

    A run is *aborted* when no model could be extracted (``error`` is set),
    otherwise *completed*, possibly with some manifests failed.
    """
    model: Optional[ComposeModel] = None
    patterns: List[DetectedPattern] = []
    manifests: Optional[ManifestSet] = None
    report: Optional[AnalysisReport] = None
    error: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.error is not None

    @property
    def completed(self) -> bool:
        return not self.aborted

    @property
    def succeeded(self) -> int:
        return self.manifests.succeeded if self.manifests else 0

    @property
    def attempted(self) -> int:
        return self.manifests.attempted if self.manifests else 0


class ConversionRunner:
    """
    Wires the parser, classifier, detector and converter into one pipeline.
    """
    def __init__(self, config: Optional[ConversionConfig] = None,
                 parser: Optional[ComposeParser] = None,
                 classifier: Optional[ServiceClassifier] = None,
                 detector: Optional[PatternDetector] = None):
        self.config = config or ConversionConfig()
        self.parser = parser or ComposeParser()
        self.classifier = classifier or ServiceClassifier()
        self.detector = detector or PatternDetector(self.classifier.rules)
        self.converter = KubernetesConverter(self.config)

    def extract(self, source: str) -> ComposeModel:
        """
        Parses ``source``, which is either a path to a compose file or the
        compose document itself.
        """
        if "\n" not in source and os.path.isfile(source):
            return self.parser.parse(source)
        return self.parser.parse_from_string(source)

    def analyze(self, source: str) -> ConversionResult:
        """
        Extracts and classifies without synthesizing manifests.

        :param source: Compose file path or document text.
        :return: Result carrying the classified model, patterns and report.
        """
        try:
            model = self.classifier.classify(self.extract(source))
        except D2KError as e:
            logger.error("Extraction failed: %s", e.message)
            return ConversionResult(error=str(e))

        return ConversionResult(
            model=model,
            patterns=self.detector.detect_patterns(model),
            report=analyze(model),
        )

    def run(self, source: str, production: Optional[bool] = None) -> ConversionResult:
        """
        Runs the full pipeline.

        Patterns are always detected; they only drive synthesis in
        production mode.

        :param source: Compose file path or document text.
        :param production: Overrides ``config.production`` when given.
        :return: Aborted result on extraction failure, otherwise the manifests.
        """
        result = self.analyze(source)
        if result.aborted:
            return result

        if production is None:
            production = self.config.production
        result.manifests = self.converter.convert(
            result.model,
            production=production,
            patterns=result.patterns if production else None,
        )
        return result

    def save(self, result: ConversionResult, output_dir: Optional[str] = None) -> str:
        """
        Writes the manifests of a completed run.

        :param output_dir: Target directory. Defaults to ``config.output_dir``.
        """
        return self.converter.save_manifests(result.manifests, output_dir or self.config.output_dir)
