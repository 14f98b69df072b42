from checkrelay.runner.build import BuildRunner
from checkrelay.runner.fetch import SourceFetcher
from checkrelay.runner.pipeline import PipelineRunner
from checkrelay.runner.suites import SuiteRunner

__all__ = ['BuildRunner', 'PipelineRunner', 'SourceFetcher', 'SuiteRunner']
