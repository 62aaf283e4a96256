"""
Reporting Engine Module

The fixed battery of Data Bank reports: node exploration, transaction
behaviour, monthly closing balances, the three data allocation options and
the interest projection. Every report is a pure read over the dataset and
can be exported as dict, JSON or CSV.
"""

from collections import defaultdict
from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple, Union
from enum import Enum
import uuid
import csv
import io
import json

from .balances import (
    monthly_closing_balances, prior_month_end_balances,
    trailing_average_balances, running_balances
)
from .config import DataBankConfig, get_config
from .interest import project_allocations
from .logging_config import get_logger, log_action
from .models import TransactionType
from .stats import mean, percentile
from .storage import DatasetInterface


class ReportType(Enum):
    """Types of available reports"""
    UNIQUE_NODES = "unique_nodes"
    NODES_PER_REGION = "nodes_per_region"
    CUSTOMERS_PER_REGION = "customers_per_region"
    AVG_REALLOCATION_DAYS = "avg_reallocation_days"
    REALLOCATION_PERCENTILES = "reallocation_percentiles"
    TRANSACTION_TYPE_SUMMARY = "transaction_type_summary"
    AVG_DEPOSIT_BEHAVIOR = "avg_deposit_behavior"
    ACTIVE_CUSTOMERS_PER_MONTH = "active_customers_per_month"
    CLOSING_BALANCE_BY_MONTH = "closing_balance_by_month"
    BALANCE_INCREASE_OVER_5PCT = "pct_customers_balance_increase_over_5pct"
    PRIOR_MONTH_END_BALANCE = "prior_month_end_balance"
    TRAILING_AVERAGE_BALANCE = "trailing_average_balance"
    REAL_TIME_BALANCE = "real_time_balance"
    INTEREST_PROJECTION = "interest_projection"


class ReportFormat(Enum):
    """Output formats for reports"""
    DICT = "dict"
    CSV = "csv"
    JSON = "json"


@dataclass
class ReportDefinition:
    """Description of a built-in report"""
    id: str
    name: str
    description: str
    report_type: ReportType
    parameters: List[str] = field(default_factory=list)


@dataclass
class ReportResult:
    """Result of a report execution"""
    report_id: str
    generated_at: datetime
    data: List[Dict[str, Any]] = field(default_factory=list)
    totals: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    
    def __post_init__(self):
        if not self.metadata:
            self.metadata = {
                'row_count': len(self.data),
                'generation_time_ms': 0
            }


BUILT_IN_REPORTS = [
    ReportDefinition(
        id=ReportType.UNIQUE_NODES.value,
        name="Unique Nodes",
        description="Number of distinct nodes on the Data Bank system",
        report_type=ReportType.UNIQUE_NODES
    ),
    ReportDefinition(
        id=ReportType.NODES_PER_REGION.value,
        name="Nodes per Region",
        description="Distinct node count for each region",
        report_type=ReportType.NODES_PER_REGION
    ),
    ReportDefinition(
        id=ReportType.CUSTOMERS_PER_REGION.value,
        name="Customers per Region",
        description="Distinct customers allocated to each region",
        report_type=ReportType.CUSTOMERS_PER_REGION
    ),
    ReportDefinition(
        id=ReportType.AVG_REALLOCATION_DAYS.value,
        name="Average Reallocation Days",
        description="Average days a customer stays on a node before reallocation",
        report_type=ReportType.AVG_REALLOCATION_DAYS
    ),
    ReportDefinition(
        id=ReportType.REALLOCATION_PERCENTILES.value,
        name="Reallocation Percentiles",
        description="Median, 80th and 95th percentile reallocation days per region",
        report_type=ReportType.REALLOCATION_PERCENTILES
    ),
    ReportDefinition(
        id=ReportType.TRANSACTION_TYPE_SUMMARY.value,
        name="Transaction Type Summary",
        description="Count and total amount for each transaction type",
        report_type=ReportType.TRANSACTION_TYPE_SUMMARY
    ),
    ReportDefinition(
        id=ReportType.AVG_DEPOSIT_BEHAVIOR.value,
        name="Average Deposit Behavior",
        description="Average historical deposit count and amount per depositing customer",
        report_type=ReportType.AVG_DEPOSIT_BEHAVIOR
    ),
    ReportDefinition(
        id=ReportType.ACTIVE_CUSTOMERS_PER_MONTH.value,
        name="Active Customers per Month",
        description="Customers in months with repeat depositors and purchase or withdrawal activity",
        report_type=ReportType.ACTIVE_CUSTOMERS_PER_MONTH
    ),
    ReportDefinition(
        id=ReportType.CLOSING_BALANCE_BY_MONTH.value,
        name="Monthly Closing Balance",
        description="Net signed amount per customer per month",
        report_type=ReportType.CLOSING_BALANCE_BY_MONTH
    ),
    ReportDefinition(
        id=ReportType.BALANCE_INCREASE_OVER_5PCT.value,
        name="Closing Balance Increase over 5%",
        description="Percentage of customers whose closing balance range exceeds 5% of the minimum",
        report_type=ReportType.BALANCE_INCREASE_OVER_5PCT
    ),
    ReportDefinition(
        id=ReportType.PRIOR_MONTH_END_BALANCE.value,
        name="Allocation Option 1: Previous Month End",
        description="Monthly balance excluding transactions on the month's last day",
        report_type=ReportType.PRIOR_MONTH_END_BALANCE
    ),
    ReportDefinition(
        id=ReportType.TRAILING_AVERAGE_BALANCE.value,
        name="Allocation Option 2: Trailing Average",
        description="Moving average over each customer's last 30 transactions",
        report_type=ReportType.TRAILING_AVERAGE_BALANCE
    ),
    ReportDefinition(
        id=ReportType.REAL_TIME_BALANCE.value,
        name="Allocation Option 3: Real Time",
        description="Running balance after each transaction",
        report_type=ReportType.REAL_TIME_BALANCE
    ),
    ReportDefinition(
        id=ReportType.INTEREST_PROJECTION.value,
        name="Simple Interest Data Growth",
        description="One month of 6% simple interest on each customer's data allocation",
        report_type=ReportType.INTEREST_PROJECTION,
        parameters=["allocations"]
    ),
]


def _percentile_label(p: float) -> str:
    if p == 0.5:
        return "median"
    return f"p{round(p * 100)}"


class ReportingEngine:
    """
    Computes Data Bank reports from a read-only dataset
    """
    
    def __init__(self, dataset: DatasetInterface, config: Optional[DataBankConfig] = None):
        self.dataset = dataset
        self.config = config or get_config()
        self.logger = get_logger("data_bank.reporting")
    
    # Node / region exploration
    
    def _region_names(self) -> Dict[int, str]:
        return {region.region_id: region.region_name for region in self.dataset.regions()}
    
    def _group_nodes_by_region(self, key: Callable) -> Dict[str, list]:
        """Inner join of customer nodes onto regions, grouped by region name"""
        names = self._region_names()
        grouped: Dict[str, list] = defaultdict(list)
        for node in self.dataset.customer_nodes():
            if node.region_id in names:
                grouped[names[node.region_id]].append(key(node))
        return grouped
    
    def unique_node_count(self) -> int:
        """Count of distinct node ids across all allocations"""
        return len({node.node_id for node in self.dataset.customer_nodes()})
    
    def nodes_per_region(self) -> ReportResult:
        start_time = datetime.now(timezone.utc)
        grouped = self._group_nodes_by_region(lambda node: node.node_id)
        data = [
            {'region_name': name, 'node_count': len(set(grouped[name]))}
            for name in sorted(grouped)
        ]
        return self._result(ReportType.NODES_PER_REGION.value, start_time, data)
    
    def customers_per_region(self) -> ReportResult:
        start_time = datetime.now(timezone.utc)
        grouped = self._group_nodes_by_region(lambda node: node.customer_id)
        data = [
            {'region_name': name, 'customer_count': len(set(grouped[name]))}
            for name in sorted(grouped)
        ]
        return self._result(ReportType.CUSTOMERS_PER_REGION.value, start_time, data)
    
    def avg_reallocation_days(self) -> Optional[float]:
        """Mean allocation length in days, None when there are no allocations"""
        return mean(node.reallocation_days for node in self.dataset.customer_nodes())
    
    def reallocation_percentiles(self) -> ReportResult:
        """
        Per-region reallocation day percentiles.
        
        Uses linear interpolation between order statistics for every region
        and every configured percentile.
        """
        start_time = datetime.now(timezone.utc)
        grouped = self._group_nodes_by_region(lambda node: node.reallocation_days)
        
        data = []
        for name in sorted(grouped):
            row: Dict[str, Any] = {'region_name': name}
            for p in self.config.percentiles:
                row[_percentile_label(p)] = percentile(grouped[name], p)
            data.append(row)
        
        return self._result(
            ReportType.REALLOCATION_PERCENTILES.value, start_time, data,
            metadata={'method': 'linear_interpolation'}
        )
    
    # Customer transactions
    
    def transaction_type_summary(self) -> ReportResult:
        start_time = datetime.now(timezone.utc)
        counts: Dict[str, int] = defaultdict(int)
        amounts: Dict[str, Decimal] = defaultdict(lambda: Decimal('0'))
        
        for txn in self.dataset.transactions():
            counts[txn.txn_type] += 1
            amounts[txn.txn_type] += txn.txn_amount
        
        data = [
            {'txn_type': txn_type, 'count': counts[txn_type], 'total_amount': amounts[txn_type]}
            for txn_type in sorted(counts)
        ]
        return self._result(
            ReportType.TRANSACTION_TYPE_SUMMARY.value, start_time, data,
            row_limit=self.config.row_limit
        )
    
    def avg_deposit_behavior(self) -> Tuple[Optional[float], Optional[float]]:
        """
        Average deposit count and deposit total per depositing customer.
        
        Customers without any deposit are not part of the average.
        """
        deposit_counts: Dict[int, int] = defaultdict(int)
        deposit_totals: Dict[int, Decimal] = defaultdict(lambda: Decimal('0'))
        
        for txn in self.dataset.transactions():
            if txn.is_deposit:
                deposit_counts[txn.customer_id] += 1
                deposit_totals[txn.customer_id] += txn.txn_amount
        
        return mean(deposit_counts.values()), mean(deposit_totals.values())
    
    def active_customers_per_month(self) -> ReportResult:
        """
        Months with more than one depositing customer and at least one
        purchasing or withdrawing customer.
        
        Both conditions are checked on the month as a whole, not per customer:
        a month qualifies even when the depositors and the spenders are
        different people. The count covers every customer with a deposit,
        purchase or withdrawal in a qualifying month.
        """
        start_time = datetime.now(timezone.utc)
        tracked = {t.value for t in TransactionType}
        
        customers: Dict[Tuple[int, int], Set[int]] = defaultdict(set)
        depositors: Dict[Tuple[int, int], Set[int]] = defaultdict(set)
        spenders: Dict[Tuple[int, int], Set[int]] = defaultdict(set)
        
        for txn in self.dataset.transactions():
            if txn.txn_type not in tracked:
                continue
            month = (txn.txn_date.year, txn.txn_date.month)
            customers[month].add(txn.customer_id)
            if txn.is_deposit:
                depositors[month].add(txn.customer_id)
            else:
                spenders[month].add(txn.customer_id)
        
        data = [
            {'year': year, 'month': month, 'customer_count': len(customers[(year, month)])}
            for year, month in sorted(customers)
            if len(depositors[(year, month)]) > 1 and len(spenders[(year, month)]) >= 1
        ]
        return self._result(ReportType.ACTIVE_CUSTOMERS_PER_MONTH.value, start_time, data)
    
    def closing_balance_by_month(self) -> ReportResult:
        start_time = datetime.now(timezone.utc)
        data = monthly_closing_balances(self.dataset.transactions())
        return self._result(
            ReportType.CLOSING_BALANCE_BY_MONTH.value, start_time, data,
            row_limit=self.config.row_limit
        )
    
    def pct_customers_balance_increase_over_5pct(self) -> Optional[float]:
        """
        Percentage of customers whose closing balance grew by more than the
        configured threshold (5% by default).
        
        Growth is (max - min) / min over the customer's monthly closing
        balances. Customers whose minimum is zero or negative have no growth
        ratio and are left out of both the numerator and the denominator.
        Returns None when no customer has a ratio.
        """
        balances: Dict[int, List[Decimal]] = defaultdict(list)
        for row in monthly_closing_balances(self.dataset.transactions()):
            balances[row['customer_id']].append(row['closing_balance'])
        
        ratios = []
        for customer_id, series in balances.items():
            lowest = min(series)
            if lowest <= Decimal('0'):
                log_action(
                    self.logger, "debug", "Skipping customer without a positive minimum balance",
                    action="balance_increase_ratio", resource=f"customer:{customer_id}",
                    extra={"minimum_closing_balance": str(lowest)}
                )
                continue
            ratios.append((max(series) - lowest) / lowest)
        
        if not ratios:
            return None
        
        increased = sum(1 for ratio in ratios if ratio > self.config.balance_increase_threshold)
        return increased * 100.0 / len(ratios)
    
    # Data allocation options
    
    def prior_month_end_balance(self) -> ReportResult:
        start_time = datetime.now(timezone.utc)
        data = prior_month_end_balances(self.dataset.transactions())
        return self._result(ReportType.PRIOR_MONTH_END_BALANCE.value, start_time, data)
    
    def trailing_average_balance(self) -> ReportResult:
        start_time = datetime.now(timezone.utc)
        window_size = self.config.trailing_window_size
        data = trailing_average_balances(self.dataset.transactions(), window_size)
        return self._result(
            ReportType.TRAILING_AVERAGE_BALANCE.value, start_time, data,
            metadata={'window_size': window_size}
        )
    
    def real_time_balance(self) -> ReportResult:
        start_time = datetime.now(timezone.utc)
        data = running_balances(self.dataset.transactions())
        return self._result(ReportType.REAL_TIME_BALANCE.value, start_time, data)
    
    def interest_projection(
        self,
        allocations: Mapping[int, Any],
        days: Optional[int] = None
    ) -> ReportResult:
        """
        Project one month of simple interest for each customer.
        
        Args:
            allocations: initial data allocation keyed by customer id
            days: also project daily-accrued growth over this many days
        """
        start_time = datetime.now(timezone.utc)
        data = project_allocations(
            allocations, self.config.annual_interest_rate, self.config.months_per_year,
            days=days, days_per_year=self.config.days_per_year
        )
        metadata = {'annual_rate': str(self.config.annual_interest_rate)}
        if days is not None:
            metadata['days'] = days
            metadata['days_per_year'] = self.config.days_per_year
        return self._result(
            ReportType.INTEREST_PROJECTION.value, start_time, data, metadata=metadata
        )
    
    # Registry
    
    def list_report_definitions(self) -> List[ReportDefinition]:
        return list(BUILT_IN_REPORTS)
    
    def run_report(self, report_id: str, **params) -> ReportResult:
        """
        Execute a built-in report by id
        """
        start_time = datetime.now(timezone.utc)
        correlation_id = params.pop('correlation_id', None)
        
        if report_id == ReportType.UNIQUE_NODES.value:
            count = self.unique_node_count()
            result = self._result(
                report_id, start_time, [{'unique_nodes': count}],
                totals={'unique_nodes': count}
            )
        
        elif report_id == ReportType.AVG_REALLOCATION_DAYS.value:
            days = self.avg_reallocation_days()
            result = self._result(
                report_id, start_time, [{'avg_reallocation_days': days}],
                totals={'avg_reallocation_days': days}
            )
        
        elif report_id == ReportType.AVG_DEPOSIT_BEHAVIOR.value:
            avg_count, avg_amount = self.avg_deposit_behavior()
            summary = {'avg_deposit_count': avg_count, 'avg_deposit_amount': avg_amount}
            result = self._result(report_id, start_time, [summary], totals=dict(summary))
        
        elif report_id == ReportType.BALANCE_INCREASE_OVER_5PCT.value:
            pct = self.pct_customers_balance_increase_over_5pct()
            result = self._result(
                report_id, start_time, [{'percentage_increase_above_5': pct}],
                totals={'percentage_increase_above_5': pct}
            )
        
        elif report_id == ReportType.INTEREST_PROJECTION.value:
            if 'allocations' not in params:
                raise ValueError("Report interest_projection requires 'allocations'")
            result = self.interest_projection(params['allocations'], params.get('days'))
        
        elif report_id in self._row_reports():
            result = self._row_reports()[report_id]()
        
        else:
            raise ValueError(f"Report {report_id} not found")
        
        log_action(
            self.logger, "info", f"Report generated: {report_id}",
            action="run_report", resource=f"report:{report_id}",
            correlation_id=correlation_id,
            extra={
                "row_count": result.metadata['row_count'],
                "generation_time_ms": result.metadata['generation_time_ms']
            }
        )
        return result
    
    def run_all(
        self,
        allocations: Optional[Mapping[int, Any]] = None,
        days: Optional[int] = None
    ) -> Dict[str, ReportResult]:
        """
        Execute every built-in report. The interest projection only runs when
        allocations are supplied.
        """
        correlation_id = str(uuid.uuid4())
        results = {}
        for definition in BUILT_IN_REPORTS:
            if definition.report_type == ReportType.INTEREST_PROJECTION:
                if allocations is None:
                    continue
                results[definition.id] = self.run_report(
                    definition.id, allocations=allocations, days=days,
                    correlation_id=correlation_id
                )
            else:
                results[definition.id] = self.run_report(definition.id, correlation_id=correlation_id)
        return results
    
    def export_report(self, result: ReportResult, format: ReportFormat) -> Union[Dict, str]:
        """
        Export report result in specified format
        """
        if format == ReportFormat.DICT:
            return {
                'report_id': result.report_id,
                'generated_at': result.generated_at.isoformat(),
                'data': result.data,
                'totals': result.totals,
                'metadata': result.metadata
            }
        
        elif format == ReportFormat.JSON:
            export_dict = self.export_report(result, ReportFormat.DICT)
            return json.dumps(export_dict, indent=2, default=str)
        
        elif format == ReportFormat.CSV:
            output = io.StringIO()
            
            if result.data:
                headers = list(result.data[0].keys())
                writer = csv.DictWriter(output, fieldnames=headers)
                writer.writeheader()
                
                for row in result.data:
                    writer.writerow(row)
            
            csv_content = output.getvalue()
            output.close()
            return csv_content
        
        else:
            raise ValueError(f"Unsupported export format: {format}")
    
    def _row_reports(self) -> Dict[str, Callable[[], ReportResult]]:
        return {
            ReportType.NODES_PER_REGION.value: self.nodes_per_region,
            ReportType.CUSTOMERS_PER_REGION.value: self.customers_per_region,
            ReportType.REALLOCATION_PERCENTILES.value: self.reallocation_percentiles,
            ReportType.TRANSACTION_TYPE_SUMMARY.value: self.transaction_type_summary,
            ReportType.ACTIVE_CUSTOMERS_PER_MONTH.value: self.active_customers_per_month,
            ReportType.CLOSING_BALANCE_BY_MONTH.value: self.closing_balance_by_month,
            ReportType.PRIOR_MONTH_END_BALANCE.value: self.prior_month_end_balance,
            ReportType.TRAILING_AVERAGE_BALANCE.value: self.trailing_average_balance,
            ReportType.REAL_TIME_BALANCE.value: self.real_time_balance,
        }
    
    def _result(
        self,
        report_id: str,
        start_time: datetime,
        data: List[Dict[str, Any]],
        totals: Optional[Dict[str, Any]] = None,
        row_limit: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ReportResult:
        """Apply the row limit and wrap rows into a ReportResult"""
        total_rows = len(data)
        if row_limit is not None:
            data = data[:row_limit]
        
        end_time = datetime.now(timezone.utc)
        generation_time = int((end_time - start_time).total_seconds() * 1000)
        
        result_metadata = {
            'row_count': len(data),
            'generation_time_ms': generation_time
        }
        if row_limit is not None:
            result_metadata['row_limit'] = row_limit
            result_metadata['truncated'] = total_rows > row_limit
        if metadata:
            result_metadata.update(metadata)
        
        log_action(
            self.logger, "debug", f"Report computed: {report_id}",
            action="compute_report", resource=f"report:{report_id}",
            extra={"row_count": len(data), "total_rows": total_rows}
        )
        
        return ReportResult(
            report_id=report_id,
            generated_at=end_time,
            data=data,
            totals=totals or {},
            metadata=result_metadata
        )
